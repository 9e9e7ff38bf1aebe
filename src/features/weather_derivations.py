"""
Energy-specific weather derivations for tropical demand forecasting.
All temperatures are in degrees Celsius.
"""

import math

# Rothfusz regression coefficients rescaled for Celsius input
HEAT_INDEX_COEFFICIENTS = (
    -8.78469475556,
    1.61139411,
    2.33854883889,
    -0.14611605,
    -0.012308094,
    -0.0164248277778,
    0.002211732,
    0.00072546,
    -0.000003582,
)

HEAT_INDEX_THRESHOLD_C = 27.0
MAGNUS_A = 17.625
MAGNUS_B = 243.04
RAIN_THRESHOLD_MM = 0.1


def relative_humidity(temperature: float, dew_point: float) -> float:
    """Relative humidity (%) from temperature and dew point via the Magnus approximation."""
    rh = 100 * math.exp((MAGNUS_A * dew_point) / (MAGNUS_B + dew_point)) / \
        math.exp((MAGNUS_A * temperature) / (MAGNUS_B + temperature))
    return min(100.0, max(0.0, rh))


def heat_index(temperature: float, humidity: float) -> float:
    """
    Heat index (feels-like temperature).

    Below 27°C the heat index is the air temperature itself.
    """
    if temperature < HEAT_INDEX_THRESHOLD_C:
        return temperature

    t, r = temperature, humidity
    c = HEAT_INDEX_COEFFICIENTS
    hi = (c[0] + c[1] * t + c[2] * r + c[3] * t * r + c[4] * t * t + c[5] * r * r
          + c[6] * t * t * r + c[7] * t * r * r + c[8] * t * t * r * r)
    return round(hi * 10) / 10


def cooling_degree_hours(temperature: float, base_temperature: float) -> float:
    return max(0.0, temperature - base_temperature)


def effective_solar(solar_radiation: float, cloud_cover: float) -> float:
    """Solar radiation attenuated by cloud cover percentage."""
    return solar_radiation * (1 - cloud_cover / 100)


def apparent_temperature(temperature: float, wind_speed: float) -> float:
    # Simplified wind chill
    return temperature - 0.05 * wind_speed


def is_raining(precipitation: float) -> bool:
    return precipitation > RAIN_THRESHOLD_MM


def is_daytime(hour: int) -> bool:
    return 6 <= hour < 18
