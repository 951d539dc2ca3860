import re
from typing import Callable, Tuple
import networkx as nx

AdjacencyPolicy = Callable[[str, str], bool]

_PREFIX = re.compile(r"^([A-Za-z]+)")
_NUMBER = re.compile(r"(\d+)")
_FULL = re.compile(r"^([A-Za-z]*)(\d+)([A-Za-z]*)$")


def split_location(loc: str) -> Tuple[str, int, str]:
    """'A101b' -> ('A', 101, 'b'); names without a number sort as (name, 0, '')."""
    m = _FULL.match(loc)
    if m:
        return m.group(1), int(m.group(2)), m.group(3)
    return loc, 0, ""


def location_sort_key(loc: str) -> Tuple[str, int, str]:
    return split_location(loc)


def prefix_number_adjacent(a: str, b: str, max_gap: int = 2) -> bool:
    """Same building letters and room numbers at most ``max_gap`` apart."""
    if a == b:
        return False
    pa, pb = _PREFIX.match(a), _PREFIX.match(b)
    na, nb = _NUMBER.search(a), _NUMBER.search(b)
    if na is None or nb is None:
        return False
    prefix_a = pa.group(1) if pa else ""
    prefix_b = pb.group(1) if pb else ""
    return prefix_a == prefix_b and abs(int(na.group(1)) - int(nb.group(1))) <= max_gap


def numbered_adjacency(max_gap: int = 2) -> AdjacencyPolicy:
    return lambda a, b: prefix_number_adjacent(a, b, max_gap=max_gap)


class VenueGraphAdjacency:
    """Adjacency read off an explicit venue topology."""

    def __init__(self, G: nx.Graph, max_hops: int = 1):
        if max_hops < 1:
            raise ValueError("max_hops must be >= 1")
        self.G = G
        self.max_hops = max_hops

    def __call__(self, a: str, b: str) -> bool:
        if a == b or a not in self.G or b not in self.G:
            return False
        if self.max_hops == 1:
            return self.G.has_edge(a, b)
        try:
            return nx.shortest_path_length(self.G, a, b) <= self.max_hops
        except nx.NetworkXNoPath:
            return False
