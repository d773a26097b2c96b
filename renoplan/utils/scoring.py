from typing import Dict, Set, Tuple


def makespan(offsets: Dict[int, Tuple[int, int]]) -> int:
    return max((finish for _, finish in offsets.values()), default=0)


def clash_overlaps(offsets: Dict[int, Tuple[int, int]], clashes: Dict[int, Set[int]]) -> int:
    """Number of clashing pairs whose intervals overlap. Zero for a leveled schedule."""
    count = 0
    for s1, neighbours in clashes.items():
        for s2 in neighbours:
            if s1 < s2:
                a, b = offsets[s1], offsets[s2]
                if max(a[0], b[0]) < min(a[1], b[1]):
                    count += 1
    return count
