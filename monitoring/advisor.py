"""
AGRONOMY ADVISOR
Classifies readings against sensor thresholds and turns breaches into
recommendations.
Rule-based: a small knowledge base keyed by sensor kind and direction.
"""

STATUS_OFFLINE = "offline"
STATUS_CRITICAL = "critical"
STATUS_WARNING = "warning"
STATUS_NORMAL = "normal"


def sensor_kind(sensor_type):
    """Maps free-text sensor types onto moisture / temperature / humidity."""
    text = (sensor_type or "").lower()
    if "moisture" in text:
        return "moisture"
    if "temp" in text:
        return "temperature"
    if "humid" in text:
        return "humidity"
    return None


def classify_value(sensor, value):
    """
    Returns (status, direction) for a value read by `sensor`.
    direction is "low", "high" or None when the value is inside the thresholds.
    """
    if value is None:
        return STATUS_OFFLINE, None
    if sensor.min_critical is not None and value < sensor.min_critical:
        return STATUS_CRITICAL, "low"
    if sensor.max_critical is not None and value > sensor.max_critical:
        return STATUS_CRITICAL, "high"
    if sensor.min_warning is not None and value < sensor.min_warning:
        return STATUS_WARNING, "low"
    if sensor.max_warning is not None and value > sensor.max_warning:
        return STATUS_WARNING, "high"
    return STATUS_NORMAL, None


class AgronomyAdvisor:
    """
    Knowledge base: maps "<kind>_<direction>" to the action to take.
    Each entry contains:
    - recommended_action: single best action to take
    - explanation: why this action is recommended
    """

    def __init__(self):
        self.knowledge_base = {
            "moisture_low": {
                "recommended_action": "Increase irrigation frequency for the next 3 days and check the lines for leaks.",
                "explanation": "Soil moisture is below the configured range; a sudden drop usually means an irrigation failure.",
            },
            "moisture_high": {
                "recommended_action": "Reduce irrigation, check the drainage system and aerate the soil to prevent root rot.",
                "explanation": "Soil moisture is above the configured range. Risk of waterlogging and fungal diseases.",
            },
            "temperature_low": {
                "recommended_action": "Install thermal covers for sensitive crops and watch for frost damage overnight.",
                "explanation": "Temperature is below the crop's optimal range. Risk of growth inhibition and frost damage.",
            },
            "temperature_high": {
                "recommended_action": "Increase shade coverage and move irrigation to early morning or late evening.",
                "explanation": "Temperature is above the optimal range. Sustained heat stresses the plants.",
            },
            "humidity_low": {
                "recommended_action": "Increase misting frequency and monitor plant hydration.",
                "explanation": "Low air humidity raises transpiration and dehydrates plants.",
            },
            "humidity_high": {
                "recommended_action": "Improve ventilation, reduce irrigation frequency and monitor for fungal diseases.",
                "explanation": "High humidity promotes fungal growth and reduces transpiration efficiency.",
            },
        }

    def advise(self, sensor, status, direction, value):
        """
        Recommendation for a threshold breach, or None when the value is fine.
        The sensor's own action_low / action_high text wins over the knowledge base.
        """
        if status not in (STATUS_CRITICAL, STATUS_WARNING):
            return None

        custom_action = sensor.action_low if direction == "low" else sensor.action_high
        rule = self.knowledge_base.get(f"{sensor_kind(sensor.type)}_{direction}")

        if custom_action:
            action = custom_action
            explanation = rule["explanation"] if rule else f"Reading {value} is {direction} for this sensor."
        elif rule:
            action = rule["recommended_action"]
            explanation = rule["explanation"]
        else:
            action = "Inspect the sensor and the area it monitors to verify conditions."
            explanation = f"Reading {value} is {direction} for this sensor."

        return {
            "id": f"rec-threshold-{sensor.sensor_id}",
            "title": f"{sensor.type.replace('_', ' ').title()} {direction} ({value}{sensor.unit})",
            "message": f"{explanation} Recommended: {action}",
            "action": action,
            "priority": "high" if status == STATUS_CRITICAL else "medium",
            "sensorId": sensor.sensor_id,
        }


# Global instance for easy import
advisor = AgronomyAdvisor()
