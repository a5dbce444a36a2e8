"""NutriVision: meal photo analysis and idealized dish rendering with Gemini."""

__version__ = "0.1.0"
