"""co2mon_mqtt - bridge an MT8057 USB CO2 monitor to MQTT with Home Assistant discovery."""

__version__ = "0.1.0"
