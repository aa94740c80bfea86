# neat_network.py

from collections import deque
from typing import Dict, Iterable, List

import numpy as np

from flappy_neat.neat_config import BIAS_ID, NUM_INPUTS, OUTPUT_ID


def sigmoid(x):
    return 1.0 / (1.0 + np.exp(-x))


ACTIVATIONS = {
    'identity': lambda x: x,
    'sigmoid': sigmoid,
    'tanh': np.tanh,
}


def topological_order(node_ids: Iterable[int], connections: Iterable) -> List[int]:
    """
    Kahn's algorithm over the given connections. Ties are broken by node id so the
    order is stable. Raises ValueError if the connections contain a cycle.
    """
    node_ids = sorted(node_ids)
    incoming = {nid: 0 for nid in node_ids}
    outgoing: Dict[int, List[int]] = {nid: [] for nid in node_ids}
    for conn in connections:
        outgoing[conn.src].append(conn.tgt)
        incoming[conn.tgt] += 1

    ready = deque(nid for nid in node_ids if incoming[nid] == 0)
    order = []
    while ready:
        nid = ready.popleft()
        order.append(nid)
        for tgt in sorted(outgoing[nid]):
            incoming[tgt] -= 1
            if incoming[tgt] == 0:
                ready.append(tgt)

    if len(order) != len(node_ids):
        raise ValueError("Connections contain a cycle; network is not feed-forward.")
    return order


class NEATNetwork:
    """
    Feed-forward evaluator for a genome.
    Node activations live on the network object only, the genome is never written to.
    """

    def __init__(self, genome, activation=None):
        self.genome = genome
        activation = activation or genome.config.hidden_activation
        self.activation = ACTIVATIONS.get(activation, ACTIVATIONS['identity'])
        # Gather enabled connections, grouped by source for propagation
        self.connections = genome.enabled_connections()
        self.outgoing: Dict[int, list] = {nid: [] for nid in genome.nodes}
        for conn in self.connections:
            self.outgoing[conn.src].append(conn)
        self.order = topological_order(genome.nodes.keys(), self.connections)
        self.values = {nid: 0.0 for nid in genome.nodes}

    def activate(self, inputs) -> float:
        """Propagate the inputs and return the squashed output activation."""
        inputs = [float(x) for x in inputs]
        if len(inputs) != NUM_INPUTS:
            raise ValueError("Input vector size does not match number of input nodes.")

        sums = {nid: 0.0 for nid in self.genome.nodes}
        values = {}
        for nid, val in enumerate(inputs):
            sums[nid] = val
        sums[BIAS_ID] = 1.0
        sums[OUTPUT_ID] = 0.0

        for nid in self.order:
            if nid < NUM_INPUTS or nid == BIAS_ID:
                values[nid] = sums[nid]
            elif nid == OUTPUT_ID:
                values[nid] = float(sigmoid(sums[nid]))
            else:
                values[nid] = float(self.activation(sums[nid]))
            for conn in self.outgoing[nid]:
                sums[conn.tgt] += values[nid] * conn.weight

        self.values = values
        return values[OUTPUT_ID]

    def decide(self, inputs) -> bool:
        return self.activate(inputs) > 0.5
