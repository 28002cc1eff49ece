"""
Convex polyhedral distance functions.

A distance function is given by the facets of its unit ball. The distance
from p to q is the largest facet distance of q - p, where the facet distance
of a vector d for facet f is dot(f, d) / |f|^2. Regular k-gons approximate
the Euclidean distance to any factor eps > 1.
"""

import math

import numpy as np


class PolyhedralDistanceFunction:
    """Distance function defined by the facet normals of a convex unit ball."""

    def __init__(self, facets):
        facets = np.asarray(facets, dtype=np.float64)
        if facets.size == 0:
            raise ValueError("A polyhedral distance function needs at least one facet")
        self.facets = facets.reshape(-1, 2)
        self._sq = np.einsum("ij,ij->i", self.facets, self.facets)

    @classmethod
    def l1(cls):
        return cls([(0.5, 0.5), (-0.5, 0.5), (-0.5, -0.5), (0.5, -0.5)])

    @classmethod
    def linf(cls):
        return cls([(1.0, 0.0), (0.0, 1.0), (-1.0, 0.0), (0.0, -1.0)])

    @classmethod
    def k_regular(cls, k):
        """
        Regular k-gon distance.

        Args:
            k: Number of facets; must be even and at least 4
        """
        if k < 4 or k % 2 != 0:
            raise ValueError(f"k-regular distance needs an even k >= 4, got {k}")
        # corners of the k-gon on the unit circle; facets are edge midpoints
        angles = 2 * np.pi * np.arange(k + 1) / k
        corners = np.column_stack([np.cos(angles), np.sin(angles)])
        return cls((corners[:-1] + corners[1:]) / 2)

    @classmethod
    def eps_approximation(cls, eps):
        """Smallest even regular polygon approximating Euclidean within eps."""
        return cls.k_regular(facets_for_eps(eps))

    @property
    def complexity(self):
        return len(self.facets)

    def facet(self, i):
        return (float(self.facets[i, 0]), float(self.facets[i, 1]))

    def facet_distances(self, d):
        """Facet distance of vector d for every facet, as an array."""
        return self.facets @ np.asarray(d, dtype=np.float64) / self._sq

    def facet_distance(self, d, i):
        return float(self.facets[i] @ np.asarray(d, dtype=np.float64) / self._sq[i])

    def facet_slopes(self, p1, p2):
        return self.facet_distances(np.subtract(p2, p1))

    def facet_slope(self, p1, p2, i):
        return self.facet_distance(np.subtract(p2, p1), i)

    def distance(self, p, q):
        return float(np.max(self.facet_distances(np.subtract(q, p))))

    def __repr__(self):
        return f"PolyhedralDistanceFunction(k={self.complexity})"


def facets_for_eps(eps):
    """Facet count for an eps-approximation of the Euclidean distance."""
    if eps <= 1:
        raise ValueError(f"Approximation factor must exceed 1, got {eps}")
    if eps >= math.sqrt(2):
        return 4
    k = int(math.ceil(2 * math.pi / math.acos(1 / eps)))
    if k % 2 == 1:
        k += 1
    return k
