"""
Upper envelope of polyhedral distance terms along a segment.

For a fixed segment p1 -> p2, the polyhedral distance from a point q to the
point at parameter t in [0, 1] is the maximum over facets of a linear function
height + slope * t. The slope depends only on the facet, so for each facet we
keep a monotone deque of (index, height) pairs: newer points push dominated
older ones off the front, and remove_upto drops expired ones from the back.
The envelope minimum over [0, 1] is found by a sweep over the facets sorted
by slope.
"""

import math
from collections import deque

import numpy as np


def _intersection(a, b):
    """Parameter where two (height, slope) lines meet; inf when parallel."""
    denom = a[1] - b[1]
    if denom == 0:
        return math.inf
    return (b[0] - a[0]) / denom


class PolyhedralUpperEnvelope:
    """Dynamic upper envelope for one segment of a polyline."""

    def __init__(self, distfunc, p1, p2):
        self.distfunc = distfunc
        self.p1 = p1
        self.p2 = p2
        slopes = distfunc.facet_slopes(p1, p2)
        self._facets = np.argsort(slopes, kind="stable")
        self._slopes = slopes[self._facets].tolist()
        self._lists = [deque() for _ in self._slopes]

    @property
    def size(self):
        return len(self._lists)

    def add(self, index, p1, p2, q):
        """
        Add the distance terms of point q under the given index.

        Elements whose height does not exceed the new height are dominated and
        are removed from the front of each facet list first.
        """
        heights = self.distfunc.facet_distances(np.subtract(p1, q))[self._facets].tolist()
        for height, fl in zip(heights, self._lists):
            while fl and fl[0][1] <= height:
                fl.popleft()
            fl.appendleft((index, height))

    def remove_upto(self, index):
        """Drop every element added with an index <= index."""
        for fl in self._lists:
            while fl and fl[-1][0] <= index:
                fl.pop()

    def clear(self):
        for fl in self._lists:
            fl.clear()

    def truncate_last(self):
        """Clear the lists of all facets with positive slope."""
        for i in range(len(self._lists) - 1, -1, -1):
            if self._slopes[i] <= 0:
                break
            self._lists[i].clear()

    def _tail(self, i):
        return (self._lists[i][-1][1], self._slopes[i])

    def find_minimum(self, *constants):
        """
        Minimum of the envelope over [0, 1], floored by the given constants.
        """
        value = self._find_minimum_trimmed()
        for c in constants:
            value = max(value, c)
        return value

    def _find_minimum_trimmed(self):
        k = len(self._lists)
        env = [None] * k
        at = [0.0] * k

        env[0] = self._tail(0)
        at[0] = 0.0
        n = 1

        for i in range(1, k):
            fle = self._tail(i)
            env[n] = fle
            at[n] = _intersection(env[n - 1], fle)
            n += 1

            if math.isinf(at[n - 1]) or math.isnan(at[n - 1]):
                # parallel to the previous line: keep the higher one
                if env[n - 1][0] > env[n - 2][0]:
                    env[n - 2] = env[n - 1]
                    if n > 2:
                        at[n - 2] = _intersection(env[n - 3], fle)
                n -= 1

            while n > 1 and at[n - 1] < at[n - 2]:
                env[n - 2] = env[n - 1]
                if n != 2:
                    at[n - 2] = _intersection(env[n - 3], fle)
                n -= 1

            if at[n - 1] > 1:
                n -= 1
            elif n > 1 and env[n - 2][1] > 0:
                n -= 1

        height, slope = env[n - 1]
        if slope > 0:
            if n > 1:
                return slope * at[n - 1] + height
            return height
        return slope + height
