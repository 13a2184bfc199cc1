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
"""Registry of NumPy bit generators used to draw swap candidates.

Permutations must be reproducible from a seed on every platform, so candidates
are computed from the raw output of a bit generator rather than from the
distribution methods of `np.random.Generator`, whose algorithms may change
between NumPy releases. Seeds are expanded with `np.random.SeedSequence`.

We recommend `philox` (the default). It is counter-based like the generators
used by JAX and TF. `pcg64` and `pcg64dxsm` are also fine. `mt19937` only emits
32 bits per draw, which limits the corpus length it can address.
"""
import dataclasses
from typing import Callable

import numpy as np


@dataclasses.dataclass(frozen=True)
class BitGeneratorInfo:
  """Describes a supported bit generator.

  Attributes:
    name: Name used in flags and constructor arguments.
    factory: Creates the bit generator from a seed sequence.
    output_bits: Number of random bits in a single `random_raw()` draw.
    period_log2: Base 2 logarithm of the period of the generator.
  """

  name: str
  factory: Callable[[np.random.SeedSequence], np.random.BitGenerator]
  output_bits: int
  period_log2: int

  @property
  def capacity(self) -> int:
    """Number of distinct values a single raw draw can take."""
    return 2**self.output_bits


_BIT_GENERATORS = {
    info.name: info
    for info in (
        BitGeneratorInfo("philox", np.random.Philox, 64, 256),
        BitGeneratorInfo("pcg64", np.random.PCG64, 64, 128),
        BitGeneratorInfo("pcg64dxsm", np.random.PCG64DXSM, 64, 128),
        BitGeneratorInfo("mt19937", np.random.MT19937, 32, 19937),
    )
}


def get_info(name: str) -> BitGeneratorInfo:
  try:
    return _BIT_GENERATORS[name]
  except KeyError:
    raise ValueError(
        f"Unknown bit generator {name!r}. Supported bit generators are"
        f" {sorted(_BIT_GENERATORS)}."
    ) from None


def make_bit_generator(name: str, seed: int) -> np.random.BitGenerator:
  """Returns a freshly seeded bit generator.

  Args:
    name: One of the registered bit generator names.
    seed: Non-negative integer seed.

  Returns:
    A bit generator whose raw output only depends on `name` and `seed`.
  """
  return get_info(name).factory(np.random.SeedSequence(seed))


def draw_in_ranges(
    bit_generator: np.random.BitGenerator,
    low: np.ndarray,
    high: np.ndarray,
    num_draws: int,
) -> np.ndarray:
  """Draws `num_draws` integers from [low[i], high[i]) for every i.

  Every row consumes exactly `num_draws` raw values, so the result for a row
  does not depend on how many rows are drawn in one call. Reducing a raw value
  modulo the range size has a bias of at most `span / capacity`, which is
  negligible for the spans used here.

  Args:
    bit_generator: Source of raw random values. Advanced in place.
    low: Inclusive lower bounds, shape [n].
    high: Exclusive upper bounds, shape [n]. Must satisfy high > low.
    num_draws: Number of draws per row.

  Returns:
    int64 array of shape [n, num_draws].
  """
  low = np.asarray(low, dtype=np.uint64)
  span = np.asarray(high, dtype=np.uint64) - low
  raw = bit_generator.random_raw(size=(len(low), num_draws))
  return (low[:, None] + raw % span[:, None]).astype(np.int64)
