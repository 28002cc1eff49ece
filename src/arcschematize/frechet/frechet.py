"""
Exact Fréchet distance between polylines under a convex distance function.

The free-space diagram is swept cell by cell. For every cell the optimal
reachable values on its left (L) and bottom (B) boundaries are propagated with
monotone queues and dynamic upper envelopes, one per row and one per column,
giving the Fréchet distance directly instead of via a decision procedure.
"""

from collections import deque

import numpy as np

from arcschematize.frechet.distance_function import PolyhedralDistanceFunction
from arcschematize.frechet.envelope import PolyhedralUpperEnvelope
from arcschematize.tracer import get_tracer


class FrechetDistance:
    """
    Fréchet distance engine.

    Args:
        distance: Callable (p, q) -> float
        row_envelope_factory: Callable (P, Q, j) -> envelope for segment Q[j]Q[j+1]
        column_envelope_factory: Callable (P, Q, i) -> envelope for segment P[i]P[i+1]
    """

    def __init__(self, distance, row_envelope_factory, column_envelope_factory):
        self.distance = distance
        self.row_envelope_factory = row_envelope_factory
        self.column_envelope_factory = column_envelope_factory

    def compute(self, P, Q):
        """
        Compute the Fréchet distance between polylines P and Q.

        Args:
            P, Q: Sequences of (x, y) points, each with at least two points

        Returns:
            Fréchet distance as a float
        """
        P = np.asarray(P, dtype=np.float64).reshape(-1, 2)
        Q = np.asarray(Q, dtype=np.float64).reshape(-1, 2)
        if len(P) < 2 or len(Q) < 2:
            raise ValueError(
                f"Fréchet distance needs polylines of at least two points, got {len(P)} and {len(Q)}"
            )

        N = len(P) - 1
        M = len(Q) - 1

        column_queues = [deque() for _ in range(N)]
        column_envelopes = [self.column_envelope_factory(P, Q, i) for i in range(N)]
        row_queues = [deque() for _ in range(M)]
        row_envelopes = [self.row_envelope_factory(P, Q, j) for j in range(M)]

        L_opt = np.zeros((N, M))
        B_opt = np.zeros((N, M))
        L_opt[0, 0] = self.distance(P[0], Q[0])
        L_opt[0, 1:] = np.inf
        B_opt[0, 0] = L_opt[0, 0]
        B_opt[1:, 0] = np.inf

        for i in range(N):
            for j in range(M):
                if i < N - 1:
                    queue = row_queues[j]
                    upperenv = row_envelopes[j]

                    while queue and B_opt[queue[-1], j] > B_opt[i, j]:
                        queue.pop()
                    queue.append(i)
                    if len(queue) == 1:
                        upperenv.clear()

                    upperenv.add(i + 1, Q[j], Q[j + 1], P[i + 1])

                    h = queue[0]
                    if h < i:
                        best = upperenv.find_minimum(L_opt[i, j], B_opt[h, j])
                    else:
                        best = upperenv.find_minimum(B_opt[h, j])

                    while len(queue) > 1 and B_opt[queue[1], j] <= best:
                        queue.popleft()
                        h = queue[0]
                        upperenv.remove_upto(h)
                        if h < i:
                            best = upperenv.find_minimum(L_opt[i, j], B_opt[h, j])
                        else:
                            best = upperenv.find_minimum(B_opt[h, j])

                    L_opt[i + 1, j] = best
                    upperenv.truncate_last()

                if j < M - 1:
                    queue = column_queues[i]
                    upperenv = column_envelopes[i]

                    while queue and L_opt[i, queue[-1]] >= L_opt[i, j]:
                        queue.pop()
                    queue.append(j)
                    if len(queue) == 1:
                        upperenv.clear()

                    upperenv.add(j + 1, P[i], P[i + 1], Q[j + 1])

                    h = queue[0]
                    if h < j:
                        best = upperenv.find_minimum(B_opt[i, j], L_opt[i, h])
                    else:
                        best = upperenv.find_minimum(L_opt[i, h])

                    while len(queue) > 1 and L_opt[i, queue[1]] <= best:
                        queue.popleft()
                        h = queue[0]
                        upperenv.remove_upto(h)
                        if h < j:
                            best = upperenv.find_minimum(B_opt[i, j], L_opt[i, h])
                        else:
                            best = upperenv.find_minimum(L_opt[i, h])

                    B_opt[i, j + 1] = best
                    upperenv.truncate_last()

        end = self.distance(P[N], Q[M])
        return float(max(end, min(L_opt[N - 1, M - 1], B_opt[N - 1, M - 1])))


def polyhedral_frechet(distfunc):
    """Build a Fréchet engine for a polyhedral distance function."""

    def row_factory(P, Q, j):
        return PolyhedralUpperEnvelope(distfunc, Q[j], Q[j + 1])

    def column_factory(P, Q, i):
        return PolyhedralUpperEnvelope(distfunc, P[i], P[i + 1])

    return FrechetDistance(distfunc.distance, row_factory, column_factory)


def distance_function_from_config(config):
    """
    Pick the distance function named in a FrechetConfig.

    Args:
        config: FrechetConfig with `distance` and `eps`
    """
    name = config.distance.lower()
    if name == "l1":
        return PolyhedralDistanceFunction.l1()
    if name == "linf":
        return PolyhedralDistanceFunction.linf()
    if name == "euclidean-approx":
        return PolyhedralDistanceFunction.eps_approximation(config.eps)
    raise ValueError(f"Unknown distance function: {config.distance}")


def frechet_from_config(config):
    distfunc = distance_function_from_config(config)
    get_tracer().event(f"Fréchet distance: {config.distance}, {distfunc.complexity} facets")
    return polyhedral_frechet(distfunc)
