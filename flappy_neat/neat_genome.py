import random
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from flappy_neat.neat_config import (
    BIAS_ID,
    NUM_INPUTS,
    OUTPUT_ID,
    InnovationTracker,
    NeatConfig,
)
from flappy_neat.neat_network import NEATNetwork, topological_order


# Define node types for neural network genes: input, bias, hidden, output
class NodeType(str, Enum):
    INPUT = "input"
    BIAS = "bias"
    HIDDEN = "hidden"
    OUTPUT = "output"


def node_type_for(id: int) -> NodeType:
    """Roles are fixed by id: sensors 0..3, bias 4, output 5, hidden above."""
    if id < NUM_INPUTS:
        return NodeType.INPUT
    if id == BIAS_ID:
        return NodeType.BIAS
    if id == OUTPUT_ID:
        return NodeType.OUTPUT
    return NodeType.HIDDEN


# NodeGene represents a single neuron in the network
class NodeGene:
    def __init__(self, id: int, type: NodeType):
        self.id = id
        self.type = type

    def __repr__(self):
        return f"NodeGene(id={self.id}, type={self.type.value})"


# ConnectionGene represents a weighted edge between two neurons in the network
class ConnectionGene:
    def __init__(self, src: int, tgt: int, weight: float, enabled: bool, innovation: int):
        self.src = src  # Source node id
        self.tgt = tgt  # Target node id
        self.weight = weight  # Connection weight
        self.enabled = enabled  # Whether the connection is enabled
        self.innovation = innovation  # Innovation number shared across the population

    def copy(self) -> "ConnectionGene":
        return ConnectionGene(self.src, self.tgt, self.weight, self.enabled, self.innovation)

    def __repr__(self):
        return (
            f"ConnGene({self.src}->{self.tgt}, w={self.weight:.3f}, "
            f"{'on' if self.enabled else 'off'}, innov={self.innovation})"
        )


# Genome class encapsulates the entire genetic encoding for a jump policy
class Genome:
    """
    A candidate jump policy: 4 sensors and a bias feeding one output through a
    feed-forward graph that grows by structural mutation.

    rng, innovation_tracker and config are shared services; clones reference the same ones.
    """

    def __init__(
            self,
            rng: Optional[random.Random] = None,
            innovation_tracker: Optional[InnovationTracker] = None,
            config: Optional[NeatConfig] = None,
            minimal: bool = True,
    ):
        self.rng = rng or random.Random()
        self.innovation_tracker = innovation_tracker or InnovationTracker()
        self.config = config or NeatConfig()

        self.nodes: Dict[int, NodeGene] = {}  # All nodes by id
        self.connections: Dict[Tuple[int, int], ConnectionGene] = {}  # Connections keyed by (src, tgt) tuple
        self.fitness = 0.0
        self.score = 0

        if minimal:
            self._build_minimal_topology()

    def _build_minimal_topology(self):
        for id in range(BIAS_ID + 1):
            self.add_node(id, node_type_for(id))
        self.add_node(OUTPUT_ID, NodeType.OUTPUT)
        for src in range(BIAS_ID + 1):
            innovation = self.innovation_tracker.get_innovation_number(src, OUTPUT_ID)
            self.add_connection(src, OUTPUT_ID, self._random_weight(), innovation)

    def add_node(self, id: int, type: NodeType):
        """Add a single node to the genome."""
        self.nodes[id] = NodeGene(id, type)

    def add_connection(self, src: int, tgt: int, weight: float, innovation: int, enabled: bool = True):
        """Add a connection between nodes with a weight and innovation id."""
        self.connections[(src, tgt)] = ConnectionGene(src, tgt, weight, enabled, innovation)

    def enabled_connections(self) -> List[ConnectionGene]:
        return [c for c in self.connections.values() if c.enabled]

    def _random_weight(self) -> float:
        limit = self.config.weight_range
        return self.rng.uniform(-limit, limit)

    # ----------------------------
    # Evaluation
    # ----------------------------

    def activate(self, inputs: Iterable[float]) -> bool:
        """Evaluate the network on 4 sensor values; True means jump."""
        return NEATNetwork(self).decide(inputs)

    def calculate_fitness(self, source: str = "episode") -> float:
        """Settle the fitness used for selection. 'score' ranks by pipes passed only."""
        if source == "score":
            self.fitness = float(self.score)
        return self.fitness

    def reset_episode(self):
        self.fitness = 0.0
        self.score = 0

    # ----------------------------
    # Mutation
    # ----------------------------

    def mutate(self):
        """Independent trials for weight, connection and node mutation."""
        if self.rng.random() < self.config.weight_mutation_rate:
            self.mutate_weights()
        if self.rng.random() < self.config.add_connection_rate:
            self.mutate_add_connection()
        if self.rng.random() < self.config.add_node_rate:
            self.mutate_add_node()

    def mutate_weights(self):
        """Nudge most weights a little, occasionally replace one outright."""
        limit = self.config.weight_range
        step = self.config.weight_perturb_step
        for conn in self.connections.values():
            if self.rng.random() < self.config.weight_perturb_rate:
                conn.weight += self.rng.uniform(-step, step)
                conn.weight = max(-limit, min(limit, conn.weight))
            else:
                conn.weight = self._random_weight()

    def candidate_connections(self) -> List[Tuple[int, int]]:
        """All new (src, tgt) edges that keep the graph feed-forward."""
        sources = [nid for nid, node in self.nodes.items() if node.type != NodeType.OUTPUT]
        targets = [nid for nid, node in self.nodes.items()
                   if node.type in (NodeType.HIDDEN, NodeType.OUTPUT)]
        outgoing: Dict[int, List[int]] = {nid: [] for nid in self.nodes}
        for src, tgt in self.connections:
            outgoing[src].append(tgt)

        candidates = []
        descendants: Dict[int, set] = {}
        for tgt in targets:
            if tgt not in descendants:
                descendants[tgt] = _reachable_from(tgt, outgoing)
            for src in sources:
                if src == tgt or (src, tgt) in self.connections:
                    continue
                # tgt reaching src already would close a cycle
                if src in descendants[tgt]:
                    continue
                candidates.append((src, tgt))
        return sorted(candidates)

    def mutate_add_connection(self) -> Optional[ConnectionGene]:
        candidates = self.candidate_connections()
        if not candidates:
            return None
        src, tgt = candidates[self.rng.randrange(len(candidates))]
        innovation = self.innovation_tracker.get_innovation_number(src, tgt)
        self.add_connection(src, tgt, self._random_weight(), innovation)
        return self.connections[(src, tgt)]

    def mutate_add_node(self) -> Optional[int]:
        enabled_conns = self.enabled_connections()
        if not enabled_conns:
            return None
        conn = enabled_conns[self.rng.randrange(len(enabled_conns))]
        conn.enabled = False

        new_node_id = self.innovation_tracker.get_split_neuron_id(conn.innovation)
        self.add_node(new_node_id, NodeType.HIDDEN)

        innov1 = self.innovation_tracker.get_innovation_number(conn.src, new_node_id)
        innov2 = self.innovation_tracker.get_innovation_number(new_node_id, conn.tgt)
        self.add_connection(conn.src, new_node_id, 1.0, innov1)
        self.add_connection(new_node_id, conn.tgt, conn.weight, innov2)
        return new_node_id

    # ----------------------------
    # Copy / crossover
    # ----------------------------

    def copy(self) -> "Genome":
        """Create a deep copy (clone) of the current genome."""
        clone = Genome(self.rng, self.innovation_tracker, self.config, minimal=False)
        for id, node in self.nodes.items():
            clone.nodes[id] = NodeGene(id, node.type)
        for key, conn in self.connections.items():
            clone.connections[key] = conn.copy()
        clone.fitness = self.fitness
        clone.score = self.score
        return clone

    clone = copy

    def validate(self) -> bool:
        """Check endpoints exist and the graph stays feed-forward."""
        for (src, tgt), conn in self.connections.items():
            if (src, tgt) != (conn.src, conn.tgt):
                return False
            if src not in self.nodes or tgt not in self.nodes:
                return False
            if self.nodes[src].type == NodeType.OUTPUT:
                return False
            if self.nodes[tgt].type in (NodeType.INPUT, NodeType.BIAS):
                return False
        try:
            topological_order(self.nodes.keys(), self.connections.values())
        except ValueError:
            return False
        return True

    def __repr__(self):
        return f"Genome(nodes={len(self.nodes)}, conns={len(self.connections)}, fitness={self.fitness:.2f})"


def _reachable_from(start: int, outgoing: Dict[int, List[int]]) -> set:
    seen = set()
    stack = [start]
    while stack:
        nid = stack.pop()
        if nid in seen:
            continue
        seen.add(nid)
        stack.extend(outgoing.get(nid, ()))
    return seen


def crossover(parent1: Genome, parent2: Genome) -> Genome:
    """
    NEAT-style crossover. The fitter parent dominates and provides the topology;
    matching genes enabled in both parents pick either parent's weight at random.
    """
    if parent2.fitness > parent1.fitness:
        parent1, parent2 = parent2, parent1

    rng = parent1.rng
    child = Genome(rng, parent1.innovation_tracker, parent1.config, minimal=False)
    for id, node in parent1.nodes.items():
        child.nodes[id] = NodeGene(id, node.type)

    by_innovation = {conn.innovation: conn for conn in parent2.connections.values()}
    for conn in parent1.connections.values():
        other = by_innovation.get(conn.innovation)
        if (other is not None and conn.enabled and other.enabled
                and rng.random() < parent1.config.crossover_inherit_rate):
            gene = other.copy()
        else:
            gene = conn.copy()
        for id in (gene.src, gene.tgt):
            if id not in child.nodes:
                child.add_node(id, node_type_for(id))
        child.connections[(gene.src, gene.tgt)] = gene

    return child
