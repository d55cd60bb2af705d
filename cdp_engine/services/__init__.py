"""Service modules"""
from .simulator import Simulator, SimulatedClock, StepResult, load_scenario, to_wei

__all__ = ["Simulator", "SimulatedClock", "StepResult", "load_scenario", "to_wei"]
