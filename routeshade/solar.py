"""
Sun position from the NOAA solar calculation spreadsheet formulas.

No external solar library is needed; results agree with standard ephemeris
libraries to a fraction of a degree, which is well below the resolution the
shadow projection cares about.
"""

import math
from datetime import timezone

from .models import SunPosition

_UNIX_EPOCH_JD = 2440587.5
_ECCENTRICITY = 0.016708634


def _julian_day(when):
    return utc(when).timestamp() / 86400.0 + _UNIX_EPOCH_JD


def solar_position(when, lat, lon):
    """
    Calculate solar altitude and azimuth using NOAA spreadsheet algorithm.

    Parameters
    ----------
    when : datetime
        Instant of observation. Naive datetimes are taken as UTC.
    lat, lon : float
        Observer latitude and longitude in degrees.

    Returns
    -------
    altitude : float
        Solar altitude angle in degrees (0=horizon, 90=zenith, negative at night).
    azimuth : float
        Solar azimuth in degrees clockwise from north (0=N, 90=E, 180=S, 270=W).
    """
    jd = _julian_day(when)
    minutes_utc = ((jd + 0.5) % 1.0) * 1440.0

    # Julian Century
    jc = (jd - 2451545.0) / 36525.0

    # Geometric mean longitude of sun (degrees)
    L0 = (280.46646 + jc * (36000.76983 + 0.0003032 * jc)) % 360

    # Mean anomaly of sun (degrees)
    M = (357.52911 + jc * (35999.05029 - 0.0001537 * jc)) % 360
    M_rad = math.radians(M)

    # Equation of center
    C = (math.sin(M_rad) * (1.914602 - jc * (0.004817 + 0.000014 * jc))
         + math.sin(2 * M_rad) * (0.019993 - 0.000101 * jc)
         + math.sin(3 * M_rad) * 0.000289)

    # Sun true longitude and apparent longitude
    sun_lon = L0 + C
    omega = 125.04 - 1934.136 * jc
    sun_app_lon = sun_lon - 0.00569 - 0.00478 * math.sin(math.radians(omega))

    # Mean obliquity of ecliptic
    obliq_mean = 23 + (26 + (21.448 - jc * (46.815 + jc * (0.00059 - jc * 0.001813))) / 60) / 60
    obliq_corr = obliq_mean + 0.00256 * math.cos(math.radians(omega))
    obliq_rad = math.radians(obliq_corr)

    # Solar declination
    sin_dec = math.sin(obliq_rad) * math.sin(math.radians(sun_app_lon))
    dec = math.asin(sin_dec)

    # Equation of time (minutes)
    y_eq = math.tan(obliq_rad / 2) ** 2
    L0_rad = math.radians(L0)
    eqt = 4 * math.degrees(
        y_eq * math.sin(2 * L0_rad)
        - 2 * _ECCENTRICITY * math.sin(M_rad)
        + 4 * _ECCENTRICITY * y_eq * math.sin(M_rad) * math.cos(2 * L0_rad)
        - 0.5 * y_eq * y_eq * math.sin(4 * L0_rad)
        - 1.25 * _ECCENTRICITY ** 2 * math.sin(2 * M_rad)
    )

    # True solar time, minutes from local solar midnight
    tst = (minutes_utc + eqt + 4 * lon) % 1440
    # Hour angle in [-180, 180)
    ha = tst / 4 - 180
    ha_rad = math.radians(ha)

    lat_rad = math.radians(lat)

    sin_alt = (math.sin(lat_rad) * sin_dec
               + math.cos(lat_rad) * math.cos(dec) * math.cos(ha_rad))
    sin_alt = max(-1.0, min(1.0, sin_alt))
    altitude = math.degrees(math.asin(sin_alt))

    denom = math.cos(lat_rad) * math.cos(math.radians(altitude))
    if abs(denom) < 1e-12:
        # Pole or zenith: azimuth is undefined, follow the hour angle
        azimuth = (ha + 180) % 360
    else:
        cos_az = (sin_dec - math.sin(lat_rad) * sin_alt) / denom
        cos_az = max(-1.0, min(1.0, cos_az))
        azimuth = math.degrees(math.acos(cos_az))
        if ha > 0:
            azimuth = 360 - azimuth

    return altitude, azimuth


def sun_position(lat, lng, when):
    """Sun position at (lat, lng) and instant ``when``.

    Azimuth is returned in the south-based convention: 0 = south, increasing
    clockwise, so west is +90 degrees and north is +/-180 degrees.
    """
    altitude, azimuth_north = solar_position(when, lat, lng)
    azimuth_south = azimuth_north - 180.0
    if azimuth_south <= -180.0:
        azimuth_south += 360.0
    return SunPosition(
        azimuth=math.radians(azimuth_south),
        altitude=math.radians(altitude),
    )


def utc(when):
    """Return ``when`` as an aware UTC datetime (naive input is UTC)."""
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


__all__ = ['solar_position', 'sun_position', 'utc']
