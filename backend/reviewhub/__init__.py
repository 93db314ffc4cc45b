"""
reviewhub: cache consistency and concurrency control for a review/booking backend

Keeps a Valkey cache coherent with the SQL store of record:
1. Cache-aside reads with null caching (penetration guard)
2. Mutex-gated and logical-expiration rebuilds (stampede guard)
3. Token-checked distributed locks and time-ordered distributed ids
4. Flash-sale (seckill) orders with one order per user and non-negative stock
"""

__version__ = "0.1.0"
