# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Windowed random permutations of a large ordered corpus.

A windowed permutation shuffles the indices [0, N) such that every element
stays close to its original position: with `half = window_size // 2`,

  t <= perm[t] + half  and  perm[t] < t + half   for every t.

A consumer that reads the corpus in original order from slow storage can then
serve the shuffled order while only keeping a window of the corpus resident.
`bounds()` tells it which original-order range that is.

Generation is best effort. Each element draws a few candidate partners inside
its window and swaps with the first one for which both swapped values stay
inside the window of their new position. If every candidate is rejected the
element is left where it is. Since the identity satisfies the window condition
and every accepted swap preserves it, the result satisfies it as well; the
generation stats still report the outcome of a post-generation check.

Example:

  store = WindowedPermutation(length=len(corpus), window_size=4096)
  for epoch in range(num_epochs):
    perm = store.get(seed=base_seed + epoch)
    ...

`WindowedPermutation` is not thread-safe. Calls to `get()` and `configure()`
must be serialized by the caller; `bounds()` can be called from any thread.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
import dataclasses
from typing import Any, Optional, Union

from absl import logging
from locshuffle._src.core import bit_generators
from locshuffle._src.core import monitoring
from locshuffle._src.core.config import config
import numpy as np


# Seed value of a store that has no permutation cached.
INVALID_SEED = None

_INDEX_DTYPES = (np.uint8, np.uint16, np.uint32, np.uint64)

_regeneration_counter = monitoring.Counter(
    "/locshuffle/window_permutation/regenerations",
    metadata=monitoring.Metadata(
        description="Number of windowed permutations generated."
    ),
    root=monitoring.get_monitoring_root(),
    fields=[("bit_generator", str)],
)

_rejected_draws_counter = monitoring.Counter(
    "/locshuffle/window_permutation/rejected_draws",
    metadata=monitoring.Metadata(
        description=(
            "Number of swap candidates rejected because a swapped element"
            " would leave its window."
        )
    ),
    root=monitoring.get_monitoring_root(),
    fields=[("bit_generator", str)],
)


class ConfigurationError(ValueError):
  """The corpus length or window size cannot be used."""


class CapacityError(ValueError):
  """The corpus is too large for the configured bit generator."""


class WindowInvariantError(RuntimeError):
  """A generated permutation moved an element outside of its window."""


@dataclasses.dataclass(frozen=True)
class GenerationStats:
  """Diagnostics of the most recent permutation generation.

  Attributes:
    seed: Seed the permutation was generated for.
    num_elements: Length of the permutation.
    rejected_draws: Number of swap candidates that were rejected.
    exhausted_elements: Number of elements for which every candidate was
      rejected and that were therefore left in place.
    window_violations: Number of elements found outside of their window after
      generation.
  """

  seed: int
  num_elements: int
  rejected_draws: int
  exhausted_elements: int
  window_violations: int

  @property
  def rejection_rate(self) -> float:
    if not self.num_elements:
      return 0.0
    return self.rejected_draws / self.num_elements


class IdentityMap(Sequence[int]):
  """Read-only identity permutation of [0, length) that is never materialized."""

  def __init__(self, length: int):
    self._length = length

  def __len__(self) -> int:
    return self._length

  def __getitem__(self, index):
    if isinstance(index, slice):
      return np.arange(*index.indices(self._length), dtype=np.int64)
    if index < 0:
      index += self._length
    if index < 0 or index >= self._length:
      raise IndexError(
          f"Index {index} is out of bounds for identity map of length"
          f" {self._length}."
      )
    return index

  def __iter__(self) -> Iterator[int]:
    return iter(range(self._length))

  def __array__(self, dtype=None, copy=None) -> np.ndarray:
    del copy
    return np.arange(self._length, dtype=dtype or np.int64)

  def __repr__(self) -> str:
    return f"IdentityMap(length={self._length})"


def smallest_index_dtype(length: int, max_index_bits: int = 64) -> np.dtype:
  """Returns the narrowest unsigned dtype that can hold indices < `length`.

  Args:
    length: Number of elements to index.
    max_index_bits: Width of the widest dtype that may be chosen. One of 8, 16,
      32 or 64.

  Returns:
    The chosen numpy dtype.

  Raises:
    ConfigurationError: If `length - 1` does not fit into `max_index_bits`.
  """
  allowed = [
      dtype for dtype in _INDEX_DTYPES if np.iinfo(dtype).bits <= max_index_bits
  ]
  if not allowed or np.iinfo(allowed[-1]).bits != max_index_bits:
    raise ValueError(
        f"max_index_bits must be one of 8, 16, 32 or 64 but got"
        f" {max_index_bits}."
    )
  for dtype in allowed:
    if length - 1 <= np.iinfo(dtype).max:
      return np.dtype(dtype)
  raise ConfigurationError(
      f"Corpus of {length} elements cannot be indexed with {max_index_bits}"
      " bit integers. Increase max_index_bits to use a wider index type."
  )


def window_bounds(
    start: int, stop: int, *, window_size: int, length: int
) -> tuple[int, int]:
  """Returns the range that any permuted index in [start, stop) can map to.

  The interval is symmetric: it is also the original-order range that has to
  be resident before any shuffled position in [start, stop) can be served.

  Args:
    start: First index of the range.
    stop: End of the range (exclusive).
    window_size: Window size of the permutation.
    length: Length of the permutation.

  Returns:
    Tuple (begin, end) with begin = max(start - window_size // 2, 0) and
    end = min(stop + window_size // 2, length).
  """
  if start < 0 or start > stop:
    raise ValueError(
        f"Invalid range [{start}, {stop}). Expected 0 <= start <= stop."
    )
  half = window_size // 2
  return max(start - half, 0), min(stop + half, length)


def count_window_violations(
    perm: Union[np.ndarray, Sequence[int]],
    window_size: int,
    chunk_size: int = 1 << 20,
) -> int:
  """Counts elements of `perm` outside of their window.

  Elements are checked in chunks so that large permutations do not need a
  full-size int64 copy.

  Args:
    perm: Permutation to check.
    window_size: Window size the permutation should respect.
    chunk_size: Number of elements checked at once.

  Returns:
    Number of positions t with not (t <= perm[t] + half and perm[t] < t + half).
  """
  perm = np.asarray(perm)
  half = window_size // 2
  violations = 0
  for chunk_start in range(0, len(perm), chunk_size):
    values = perm[chunk_start : chunk_start + chunk_size].astype(np.int64)
    positions = np.arange(
        chunk_start, chunk_start + len(values), dtype=np.int64
    )
    ok = (positions <= values + half) & (values < positions + half)
    violations += int(np.count_nonzero(~ok))
  return violations


def validate_seed(seed: Any) -> int:
  """Returns `seed` as a Python int, raising for negative or non-int seeds."""
  if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
    raise TypeError(f"Expected seed of int type. Got seed of type {type(seed)}.")
  if seed < 0:
    raise ValueError(f"Seed must be a non-negative integer (got {seed=}).")
  return int(seed)


class WindowedPermutation:
  """Caches the windowed permutation of a corpus for one seed at a time.

  The permutation is regenerated from scratch whenever `get()` is called with
  a seed different from the cached one. A window size of 0 disables
  randomization: `get()` then returns an `IdentityMap` and never allocates.
  """

  def __init__(
      self,
      length: int = 0,
      window_size: int = 0,
      *,
      max_index_bits: Optional[int] = None,
      bit_generator: Optional[str] = None,
      max_swap_attempts: Optional[int] = None,
      chunk_size: Optional[int] = None,
  ):
    """Creates a store and configures it for `length` and `window_size`.

    Args:
      length: Number of elements in the corpus.
      window_size: Window size. 0 disables randomization.
      max_index_bits: Widest integer type used for permutation entries.
        Defaults to --locshuffle_max_index_bits.
      bit_generator: Name of the bit generator drawing swap candidates.
        Defaults to --locshuffle_bit_generator.
      max_swap_attempts: Candidates drawn per element. Defaults to
        --locshuffle_max_swap_attempts.
      chunk_size: Elements per vectorized draw. Defaults to
        --locshuffle_generation_chunk_size.
    """
    if max_index_bits is None:
      max_index_bits = int(config.get_or_default("max_index_bits"))
    if bit_generator is None:
      bit_generator = config.get_or_default("bit_generator")
    if max_swap_attempts is None:
      max_swap_attempts = config.get_or_default("max_swap_attempts")
    if chunk_size is None:
      chunk_size = config.get_or_default("generation_chunk_size")
    if max_swap_attempts <= 0:
      raise ValueError(
          f"max_swap_attempts must be positive but got {max_swap_attempts}."
      )
    if chunk_size <= 0:
      raise ValueError(f"chunk_size must be positive but got {chunk_size}.")
    self._max_index_bits = max_index_bits
    self._bit_generator_info = bit_generators.get_info(bit_generator)
    self._max_swap_attempts = max_swap_attempts
    self._chunk_size = chunk_size
    self._length = 0
    self._window_size = 0
    self._index_dtype = np.dtype(np.uint8)
    self._map: Optional[np.ndarray] = None
    self._current_seed: Optional[int] = INVALID_SEED
    self._last_stats: Optional[GenerationStats] = None
    self.configure(length, window_size)

  def __repr__(self) -> str:
    return (
        f"WindowedPermutation(length={self._length}, "
        f"window_size={self._window_size}, "
        f"index_dtype={self._index_dtype}, "
        f"bit_generator={self._bit_generator_info.name!r}, "
        f"current_seed={self._current_seed})"
    )

  def __len__(self) -> int:
    return self._length

  @property
  def length(self) -> int:
    return self._length

  @property
  def window_size(self) -> int:
    return self._window_size

  @property
  def index_dtype(self) -> np.dtype:
    return self._index_dtype

  @property
  def bit_generator(self) -> str:
    return self._bit_generator_info.name

  @property
  def max_swap_attempts(self) -> int:
    return self._max_swap_attempts

  @property
  def last_stats(self) -> Optional[GenerationStats]:
    """Diagnostics of the last generation, None if nothing was generated."""
    return self._last_stats

  def current_seed(self) -> Optional[int]:
    """Returns the seed of the cached permutation or INVALID_SEED."""
    return self._current_seed

  def invalidate(self) -> None:
    """Drops the cached permutation. The next `get()` regenerates it."""
    self._current_seed = INVALID_SEED

  def configure(self, length: int, window_size: int) -> None:
    """Sets corpus length and window size and invalidates the permutation.

    All checks run before any state is changed, so a failed call leaves the
    store as it was.

    Args:
      length: Number of elements in the corpus.
      window_size: Window size. 0 disables randomization.

    Raises:
      ConfigurationError: If length or window size are invalid or the corpus
        cannot be indexed with the allowed index width.
      CapacityError: If the corpus is too large for the bit generator.
    """
    if length < 0:
      raise ConfigurationError(
          f"Corpus length must be non-negative but got {length}."
      )
    if window_size < 0:
      raise ConfigurationError(
          f"Window size must be non-negative but got {window_size}."
      )
    if window_size == 1:
      raise ConfigurationError(
          "Window size 1 leaves no valid position for any element. Use 0 to"
          " disable randomization or a window size of at least 2."
      )
    index_dtype = smallest_index_dtype(length, self._max_index_bits)
    if length > self._bit_generator_info.capacity:
      raise CapacityError(
          f"Corpus of {length} elements exceeds the capacity of bit generator"
          f" {self._bit_generator_info.name!r}"
          f" ({self._bit_generator_info.capacity} values per draw). Use a"
          " bit generator with wider output."
      )
    if self._map is not None and (
        len(self._map) != length or self._map.dtype != index_dtype
    ):
      self._map = None
    self._length = length
    self._window_size = window_size
    self._index_dtype = index_dtype
    self.invalidate()

  def bounds(self, start: int, stop: int) -> tuple[int, int]:
    """Returns the range [begin, end) covering all images of [start, stop)."""
    return window_bounds(
        start, stop, window_size=self._window_size, length=self._length
    )

  def get(self, seed: int) -> Union[np.ndarray, IdentityMap]:
    """Returns the permutation for `seed`, regenerating it if needed.

    Args:
      seed: Non-negative integer seed.

    Returns:
      A read-only array with `perm[t]` being the original index served at
      shuffled position t, or an `IdentityMap` if randomization is disabled.
      The array is reused by later generations, copy it to keep it across
      calls with another seed.

    Raises:
      WindowInvariantError: If --locshuffle_raise_on_window_violation is set
        and the generated permutation violates the window condition.
    """
    seed = validate_seed(seed)
    if self._window_size == 0:
      return IdentityMap(self._length)
    if seed != self._current_seed or self._map is None:
      self._regenerate(seed)
    view = self._map.view()
    view.flags.writeable = False
    return view

  def _regenerate(self, seed: int) -> None:
    """Rebuilds the whole permutation for `seed`."""
    self.invalidate()
    n = self._length
    half = self._window_size // 2
    if self._map is None:
      self._map = np.empty(n, dtype=self._index_dtype)
    perm = self._map
    perm[:] = np.arange(n, dtype=self._index_dtype)

    bit_generator = bit_generators.make_bit_generator(
        self._bit_generator_info.name, seed
    )
    rejected_draws = 0
    exhausted_elements = 0
    for chunk_start in range(0, n, self._chunk_size):
      chunk_end = min(chunk_start + self._chunk_size, n)
      positions = np.arange(chunk_start, chunk_end, dtype=np.int64)
      candidates = bit_generators.draw_in_ranges(
          bit_generator,
          low=np.maximum(positions - half, 0),
          high=np.minimum(positions + half, n),
          num_draws=self._max_swap_attempts,
      )
      for t, row in zip(range(chunk_start, chunk_end), candidates.tolist()):
        value_t = int(perm[t])
        for r in row:
          value_r = int(perm[r])
          # Both values have to stay inside the window of their new position.
          if (
              r <= value_t + half
              and value_t < r + half
              and t <= value_r + half
              and value_r < t + half
          ):
            perm[t] = value_r
            perm[r] = value_t
            break
          rejected_draws += 1
        else:
          exhausted_elements += 1

    violations = count_window_violations(perm, self._window_size)
    self._last_stats = GenerationStats(
        seed=seed,
        num_elements=n,
        rejected_draws=rejected_draws,
        exhausted_elements=exhausted_elements,
        window_violations=violations,
    )
    _regeneration_counter.Increment(self._bit_generator_info.name)
    _rejected_draws_counter.IncrementBy(
        rejected_draws, self._bit_generator_info.name
    )
    logging.info(
        "Windowed permutation: %d rejected draws for %d elements (%.1f%%),"
        " %d elements left in place.",
        rejected_draws,
        n,
        100.0 * self._last_stats.rejection_rate,
        exhausted_elements,
    )
    if violations:
      logging.warning(
          "Windowed permutation for seed %d moved %d of %d elements outside"
          " of the window of size %d.",
          seed,
          violations,
          n,
          self._window_size,
      )
      if config.get_or_default("raise_on_window_violation"):
        raise WindowInvariantError(
            f"Permutation for seed {seed} violates the window condition for"
            f" {violations} of {n} elements (window size"
            f" {self._window_size})."
        )
    logging.info(
        "Recached windowed permutation for seed %d: %s",
        seed,
        perm[:3].tolist(),
    )
    self._current_seed = seed
