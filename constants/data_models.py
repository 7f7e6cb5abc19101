# constants/data_models.py

# Column positions (0-based) of the `lot` table
LOT_COLUMNS = [
    "lot_code",
    "product_code",
    "product_name",
    "product_type",
    "peel_date",
    "pack_date",
    "qc",
    "production_date",
    "expiry_date",
    "notes",
    "quantity",
    "unit",
    "shots",
    "image_url",
    "position",
    "reference",
    "status",
    "merged_to",
    "deleted_reason",
]
LOT_COL = {name: idx for idx, name in enumerate(LOT_COLUMNS)}

# The deletion ledger copies lot columns A..P, then Q=deleted_at, R=deleted_by, S=reason
DELETED_LOT_COPIED_COLUMNS = 16

# Column positions (0-based) of the `Products` table
PRODUCT_COLUMNS = [
    "code",
    "name",
    "group",
    "uom_small",
    "uom_medium",
    "uom_large",
    "ratio_small_to_medium",
    "ratio_medium_to_large",
    "spec",
    "description",
    "image_url",
    "image_url2",
    "image_url3",
]
PRODUCT_COL = {name: idx for idx, name in enumerate(PRODUCT_COLUMNS)}

# `lot_pos` assignment table
LOT_POS_COLUMNS = [
    "lot_code",
    "position",
]
LOT_POS_COL = {name: idx for idx, name in enumerate(LOT_POS_COLUMNS)}

AUDIT_LOG_COLUMNS = [
    "ts",
    "username",
    "name",
    "method",
    "path",
    "query",
    "ip",
    "ua",
    "details",
]

# Lot status marking a lot that was merged into another one
MERGED_STATUS = "MERGED"
