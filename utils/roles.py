ADVERTISER = "ADVERTISER"
STATION_ADMIN = "STATION_ADMIN"
SUPER_ADMIN = "SUPER_ADMIN"

DEFAULT_ROLES = [ADVERTISER, STATION_ADMIN, SUPER_ADMIN]
