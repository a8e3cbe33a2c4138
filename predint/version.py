"""Version information for predint."""

__version__ = "0.1.0"
__author__ = "predint developers"
__description__ = "Distribution-free prediction intervals for regression models"
