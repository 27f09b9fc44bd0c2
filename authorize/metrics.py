from prometheus_client import Counter

CHECK_COUNTER = Counter(
    'authorize_checks_total',
    'Total number of authorization checks answered',
    ['kind', 'result'],
)

CACHE_LOOKUP_COUNTER = Counter(
    'authorize_cache_lookups_total',
    'Cache lookups performed by authorization services',
    ['result'],
)

MUTATION_COUNTER = Counter(
    'authorize_mutations_total',
    'Association rows inserted or deleted through the service',
    ['table', 'action'],
)
