from typing import Iterable, Tuple
import networkx as nx


def build_venue_graph(edges: Iterable[Tuple[str, str]]) -> nx.Graph:
    """Undirected graph of rooms; an edge means one invigilator can watch both."""
    G = nx.Graph()
    for u, v in edges:
        u, v = str(u).strip(), str(v).strip()
        if not u or not v:
            continue
        G.add_node(u)
        G.add_node(v)
        if u != v:
            G.add_edge(u, v)
    return G
