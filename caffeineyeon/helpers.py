from flask import current_app, jsonify, request

# SQLite INTEGER is a signed 64-bit value
MAX_ID = 2 ** 63 - 1


def strict_int(value):
    """
    ``value`` as an int, or None unless it is a whole number.

    Bools are refused, floats only when they have no fractional part, and
    strings must spell an integer ("4", not "4.5").
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_id(value):
    """A storable id (1..MAX_ID) or None."""
    number = strict_int(value)
    if number is None or not 1 <= number <= MAX_ID:
        return None
    return number


def read_limit(default_key, max_key):
    """?limit= clamped to [1, config[max_key]]; junk falls back to the default."""
    default = current_app.config[default_key]
    try:
        limit = int(request.args.get('limit', default))
    except (TypeError, ValueError):
        limit = default
    return min(max(limit, 1), current_app.config[max_key])


def guarded_write(query, exists, **values):
    """
    Run an update (or delete when ``values`` is empty) that already filters on
    the author. Returns an error response when nothing matched: 404 if the row
    is missing entirely, 403 if it belongs to someone else. None on success.
    """
    changed = query.update(values, synchronize_session=False) if values \
        else query.delete(synchronize_session=False)
    if changed:
        return None
    if not exists():
        return jsonify({'error': 'Not found'}), 404
    return jsonify({'error': 'Forbidden'}), 403
