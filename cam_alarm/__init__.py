# cam-alarm — camera alert debounce gateway
# Entry point: cam_alarm.main:app

__version__ = "1.0.0"
