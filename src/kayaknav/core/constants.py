"""Physical and unit constants."""

# Nautical mile (m)
NAUTICAL_MILE_M = 1852.0

# Unit conversions
KNOTS_TO_MS = NAUTICAL_MILE_M / 3600
MS_TO_KNOTS = 1 / KNOTS_TO_MS
MINUTES_TO_SECONDS = 60

# Coordinate reference systems
CRS_WGS84 = "EPSG:4326"  # Geographic lat/lon
CRS_WEB_MERCATOR = "EPSG:3857"  # Map plane used for waypoints
CRS_ECEF = "EPSG:4978"  # WGS84 Earth-centred, Earth-fixed

# Ellipsoid for geodesic calculations
ELLIPSOID = "WGS84"

# Float noise allowed when a leg's remaining distance reaches zero (m)
DISTANCE_EPSILON_M = 1e-3
