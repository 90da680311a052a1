import networkx as nx
import matplotlib.pyplot as plt
from matplotlib.lines import Line2D
from matplotlib.patches import Patch

from ..services.dependency_graph import VisualizationData

IMPACT_SIZES = {"HIGH": 900, "MEDIUM": 650, "LOW": 450}


def _to_graph(data: VisualizationData):
    G = nx.DiGraph()
    for node in data.nodes:
        G.add_node(node["id"], **node)
    for edge in data.edges:
        G.add_edge(edge["from"], edge["to"], delay=edge.get("delay", 0))
    return G


def create_network_diagram(data, filename=None, show=True, layout="spring"):
    """
    Draw the dependency network with the critical path highlighted.

    Node size follows the impact level of a task (how many tasks depend on
    it); edges into a moved task are labelled with the shift in days.

    Args:
        data: VisualizationData from DependencyGraph.visualization() or a
            DependencyUpdate
        filename: Optional filename to save the diagram
        show: Whether to display the diagram (default: True)
        layout: Network layout type ('spring', 'circular', 'shell' or 'spectral')

    Returns:
        The matplotlib figure
    """
    G = _to_graph(data)
    critical_path = list(data.critical_path)
    critical_set = set(critical_path)

    plt.figure(figsize=(12, 8))

    node_colors = []
    node_sizes = []
    for node in G.nodes():
        attrs = G.nodes[node]
        if attrs.get("status") == "COMPLETED":
            node_colors.append("lightgreen")
        elif node in critical_set:
            node_colors.append("red")
        elif attrs.get("taskType") == "CONNECTED":
            node_colors.append("skyblue")
        else:
            node_colors.append("lightgray")
        node_sizes.append(IMPACT_SIZES.get(attrs.get("impactLevel"), 450))

    edge_colors = []
    edge_widths = []
    for u, v in G.edges():
        on_path = (
            u in critical_set
            and v in critical_set
            and critical_path.index(u) + 1 == critical_path.index(v)
        )
        if on_path:
            edge_colors.append("red")
            edge_widths.append(2.5)
        elif G.edges[u, v]["delay"]:
            edge_colors.append("orange")
            edge_widths.append(2.0)
        else:
            edge_colors.append("gray")
            edge_widths.append(1.0)

    if layout == "circular":
        pos = nx.circular_layout(G)
    elif layout == "shell":
        pos = nx.shell_layout(G)
    elif layout == "spectral" and G.number_of_nodes() > 2:
        pos = nx.spectral_layout(G)
    else:
        pos = nx.spring_layout(G, seed=42)

    nx.draw_networkx_nodes(
        G,
        pos,
        node_color=node_colors,
        node_size=node_sizes,
        edgecolors="black",
    )
    nx.draw_networkx_edges(
        G,
        pos,
        edge_color=edge_colors,
        width=edge_widths,
        arrowsize=15,
        arrowstyle="-|>",
        connectionstyle="arc3,rad=0.1",
    )

    edge_labels = {
        (u, v): f"{d['delay']:+d}d" for u, v, d in G.edges(data=True) if d["delay"]
    }
    if edge_labels:
        nx.draw_networkx_edge_labels(G, pos, edge_labels=edge_labels, font_size=8)

    bbox_props = dict(boxstyle="round,pad=0.3", fc="white", ec="gray", alpha=0.8)
    for node in G.nodes():
        attrs = G.nodes[node]
        label = f"{node}: {attrs.get('title', '')}"
        if attrs.get("status") == "COMPLETED":
            label += " [done]"
        plt.text(
            pos[node][0],
            pos[node][1] - 0.02,
            label,
            horizontalalignment="center",
            bbox=bbox_props,
            fontsize=9,
        )

    legend_elements = [
        Patch(facecolor="red", edgecolor="black", label="Critical Path Task"),
        Patch(facecolor="skyblue", edgecolor="black", label="Connected Task"),
        Patch(facecolor="lightgray", edgecolor="black", label="Independent Task"),
        Patch(facecolor="lightgreen", edgecolor="black", label="Completed Task"),
        Line2D([0], [0], color="red", lw=2.5, label="Critical Path"),
        Line2D([0], [0], color="orange", lw=2, label="Shifted Dependency"),
    ]
    plt.legend(handles=legend_elements, loc="best", fontsize=10)

    plt.title("Task Dependency Network", fontsize=14)
    plt.axis("off")
    plt.tight_layout()

    if filename:
        plt.savefig(filename, dpi=300, bbox_inches="tight")

    if show:
        plt.show()

    return plt.gcf()
