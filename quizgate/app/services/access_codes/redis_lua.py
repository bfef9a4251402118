"""Redis Lua scripts for the access-code store.

These scripts provide atomic operations to prevent TOCTOU race conditions
when several instances consume or create the same code concurrently.
Timestamps are epoch milliseconds; an empty ``expires_at`` means the code
never expires.
"""

# Atomic find-valid-and-consume.
# Returns the updated hash (HGETALL pairs) on success, nil otherwise.
CONSUME_SCRIPT = """
    local key = KEYS[1]
    local now_ms = tonumber(ARGV[1])

    if redis.call('EXISTS', key) == 0 then
        return false
    end

    local max_uses = tonumber(redis.call('HGET', key, 'max_uses'))
    local current_uses = tonumber(redis.call('HGET', key, 'current_uses')) or 0
    if current_uses >= max_uses then
        return false
    end

    local expires_at = redis.call('HGET', key, 'expires_at')
    if expires_at and expires_at ~= '' and now_ms >= tonumber(expires_at) then
        return false
    end

    redis.call('HINCRBY', key, 'current_uses', 1)
    redis.call('HSET', key, 'last_used_at', ARGV[1])
    return redis.call('HGETALL', key)
"""

# Create-if-absent. Returns 1 when created, 0 when the code already exists.
# ARGV[5] is the physical deletion instant (expiry + retention), '' for none.
CREATE_SCRIPT = """
    local key = KEYS[1]
    local index_key = KEYS[2]

    if redis.call('EXISTS', key) == 1 then
        return 0
    end

    redis.call('HSET', key,
        'code', ARGV[1],
        'max_uses', ARGV[2],
        'current_uses', 0,
        'created_at', ARGV[3],
        'expires_at', ARGV[4],
        'last_used_at', '')
    if ARGV[5] ~= '' then
        redis.call('PEXPIREAT', key, ARGV[5])
    end
    redis.call('SADD', index_key, ARGV[1])
    return 1
"""

# Reset the use counter. Returns the updated hash, nil if the code is unknown.
RESET_SCRIPT = """
    local key = KEYS[1]
    if redis.call('EXISTS', key) == 0 then
        return false
    end
    redis.call('HSET', key, 'current_uses', 0)
    return redis.call('HGETALL', key)
"""
