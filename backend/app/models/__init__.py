from .occupancy_forecast import OccupancyForecast


__all__ = ["OccupancyForecast"]
