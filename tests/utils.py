import random
import string


def fill(q, values):
    for v in values:
        assert q.insert_tail(v)
    return q


def random_strings(n, seed=0, min_len=1, max_len=8):
    rng = random.Random(seed)
    return [
        "".join(rng.choice(string.ascii_letters + string.digits) for _ in range(rng.randint(min_len, max_len)))
        for _ in range(n)
    ]
