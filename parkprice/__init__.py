"""Dynamic pricing for sensor-monitored parking spots."""
