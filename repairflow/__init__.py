# RepairFlow - repair order workflow for a vehicle service station
__version__ = "1.0.0"
