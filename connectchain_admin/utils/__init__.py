from .validation import to_decimal, to_int, to_bool, to_datetime, require_fields
