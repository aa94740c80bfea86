# visualize.py
"""
Offline plots for inspecting a training run: fitness over generations and the
structure of a single genome.
"""

import logging

import matplotlib

matplotlib.use('Agg')  # Use non-interactive backend for saving plots

import matplotlib.pyplot as plt
import networkx as nx

from flappy_neat.neat_genome import NodeType

logger = logging.getLogger(__name__)

NODE_COLORS = {
    NodeType.INPUT: "skyblue",
    NodeType.BIAS: "khaki",
    NodeType.HIDDEN: "gray",
    NodeType.OUTPUT: "lightgreen",
}
SENSOR_LABELS = {0: "bird_y", 1: "dist_x", 2: "gap_y", 3: "to_gap", 4: "bias", 5: "jump"}


def genome_layout(genome):
    """Sensors on the left, hidden neurons in the middle, output on the right."""
    columns = {NodeType.INPUT: 0.0, NodeType.BIAS: 0.0, NodeType.HIDDEN: 0.5, NodeType.OUTPUT: 1.0}
    by_column = {}
    for nid in sorted(genome.nodes):
        by_column.setdefault(columns[genome.nodes[nid].type], []).append(nid)

    pos = {}
    for x, ids in by_column.items():
        for row, nid in enumerate(ids):
            pos[nid] = (x, -(row - (len(ids) - 1) / 2))
    return pos


def plot_genome(genome, filename=None, title="Jump Network"):
    """
    Draws the structure of a single genome using networkx/matplotlib.
    Enabled edges: green for positive weights, red for negative, width ~ |weight|.
    Disabled edges are drawn thin and dashed.
    """
    G = nx.DiGraph()
    for nid in genome.nodes:
        G.add_node(nid)

    enabled, disabled = [], []
    edge_colors, edge_widths = [], []
    for (src, tgt), conn in genome.connections.items():
        G.add_edge(src, tgt)
        if conn.enabled:
            enabled.append((src, tgt))
            edge_colors.append("green" if conn.weight > 0 else "red")
            edge_widths.append(1 + abs(conn.weight) * 3)
        else:
            disabled.append((src, tgt))

    pos = genome_layout(genome)
    node_list = list(G.nodes)
    labels = {nid: SENSOR_LABELS.get(nid, str(nid)) for nid in node_list}

    fig, ax = plt.subplots(figsize=(8, 5))
    nx.draw_networkx_nodes(G, pos, nodelist=node_list, ax=ax,
                           node_color=[NODE_COLORS[genome.nodes[nid].type] for nid in node_list])
    nx.draw_networkx_labels(G, pos, labels=labels, ax=ax, font_size=8)
    nx.draw_networkx_edges(G, pos, edgelist=enabled, edge_color=edge_colors, width=edge_widths,
                           arrows=True, ax=ax)
    if disabled:
        nx.draw_networkx_edges(G, pos, edgelist=disabled, style="dashed", width=1, alpha=0.4,
                               arrows=True, ax=ax)
    ax.set_title(title)
    ax.axis("off")
    if filename:
        fig.savefig(filename, bbox_inches='tight')
        logger.info(f"Genome plot saved to {filename}")
    plt.close(fig)
    return G


def plot_fitness_curve(fitness_history, filename="fitness.png"):
    """
    Plot best/avg/min fitness over generations.
    Expects fitness_history as the Population's history: dicts with "gen", "max", "avg", "min".
    """
    if not fitness_history:
        logger.warning("No fitness history to plot")
        return None

    gens = [record["gen"] for record in fitness_history]
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(gens, [record["max"] for record in fitness_history], label="Best")
    ax.plot(gens, [record["avg"] for record in fitness_history], label="Average")
    ax.plot(gens, [record["min"] for record in fitness_history], label="Worst", alpha=0.5)
    ax.set_xlabel("Generation")
    ax.set_ylabel("Fitness")
    ax.legend()
    fig.tight_layout()
    fig.savefig(filename)
    plt.close(fig)
    logger.info(f"Fitness curve saved to {filename}")
    return filename
