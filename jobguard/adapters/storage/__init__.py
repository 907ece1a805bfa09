"""Key/value storage adapters.

The throttle tracker and TTL cache persist serialized records under
namespaced string keys, so any store implementing the four-method interface
in ``base`` can back them.
"""
