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
"""A sampler is reponsible for providing which records to load next.

`WindowedIndexSampler` serves the records of one shard in a windowed random
order that changes every epoch, while every record stays close to its original
position. Readers that stream the shard from storage in original order can use
`record_key_bounds()` to decide which block to keep resident.
"""

from typing import Optional, Protocol

from locshuffle._src.core import monitoring
from locshuffle._src.core import sharding
from locshuffle._src.python import record
from locshuffle._src.python import window_permutation
import numpy as np


_api_usage_counter = monitoring.Counter(
    "/locshuffle/samplers/api",
    metadata=monitoring.Metadata(
        description="Sampler API initialization counter."
    ),
    root=monitoring.get_monitoring_root(),
    fields=[("name", str)],
)


class Sampler(Protocol):
  """Interface for locshuffle samplers."""

  def __getitem__(self, index: int) -> record.RecordMetadata:
    """Returns the RecordMetadata for a global index."""


class WindowedIndexSampler:
  """Index sampler shuffling a shard within a sliding window.

  Global indices are interleaved across shards: the process with shard index
  `i` requests `i, i + shard_count, i + 2 * shard_count, ...`. Each epoch of the
  shard uses the windowed permutation for `seed + epoch`.

  The sampler owns two `WindowedPermutation` stores, one for even and one for
  odd epochs, so indices that alternate between two adjacent epochs (e.g. a
  prefetcher reading ahead across an epoch boundary) do not regenerate.
  Jumping back and forth by two or more epochs still regenerates the whole
  O(shard length) permutation on every jump. Allocation is lazy, the odd store
  only costs memory once an odd epoch is served. It is not thread-safe.
  """

  def __init__(
      self,
      num_records: int,
      window_size: int,
      shard_options: sharding.ShardOptions = sharding.NoSharding(),
      num_epochs: Optional[int] = None,
      seed: int = 0,
      **permutation_kwargs,
  ):
    """Creates the sampler.

    Args:
      num_records: Number of records in the whole corpus.
      window_size: Window size of the permutation. 0 disables shuffling.
      shard_options: Options for sharding the corpus in this process.
      num_epochs: Number of epochs to serve. None means infinitely many.
      seed: Non-negative base seed.
      **permutation_kwargs: Forwarded to `WindowedPermutation`.
    """
    if num_records <= 0:
      raise ValueError(
          "Invalid number of records in Sampler. "
          f"Got {num_records} records, but number of records "
          "must be greater than 0."
      )
    if num_epochs is not None and num_epochs <= 0:
      raise ValueError(
          "Invalid number of epochs in Sampler. "
          f"Got {num_epochs} epochs, but number of epochs "
          "must be greater than 0."
      )
    seed = window_permutation.validate_seed(seed)
    self._num_records = num_records
    self._shard_options = shard_options
    self._num_epochs = num_epochs
    self._seed = seed
    self._start, self._end = sharding.even_split(num_records, shard_options)
    if self._end <= self._start:
      raise ValueError(
          f"Shard {shard_options.shard_index} of"
          f" {shard_options.shard_count} has no records (corpus has"
          f" {num_records} records)."
      )
    # Indexed by epoch parity.
    self._permutations = tuple(
        window_permutation.WindowedPermutation(
            length=self._end - self._start,
            window_size=window_size,
            **permutation_kwargs,
        )
        for _ in range(2)
    )
    _api_usage_counter.Increment("WindowedIndexSampler")

  def __repr__(self) -> str:
    return (
        f"WindowedIndexSampler(num_records={self._num_records}, "
        f"window_size={self._permutations[0].window_size}, "
        f"shard_options={self._shard_options!r}, "
        f"num_epochs={self._num_epochs}, "
        f"seed={self._seed})"
    )

  @property
  def shard_range(self) -> tuple[int, int]:
    """Original-order record keys [start, end) owned by this shard."""
    return self._start, self._end

  def permutation_for_epoch(
      self, epoch: int
  ) -> window_permutation.WindowedPermutation:
    """Returns the store that serves `epoch` (regenerated for seed + epoch)."""
    return self._permutations[epoch % 2]

  def __getitem__(self, index: int) -> record.RecordMetadata:
    shard_length = self._end - self._start
    position = index // self._shard_options.shard_count
    if index < 0 or (
        self._num_epochs is not None
        and position >= self._num_epochs * shard_length
    ):
      raise IndexError(
          f"RecordMetadata object index is out of bounds; Got index {index},"
          f" which is outside of {self._num_epochs} epochs of"
          f" {shard_length} records."
      )
    epoch, position_in_epoch = divmod(position, shard_length)
    perm = self.permutation_for_epoch(epoch).get(self._seed + epoch)
    record_key = self._start + int(perm[position_in_epoch])
    rng = np.random.Generator(np.random.Philox(key=self._seed + index))
    return record.RecordMetadata(index=index, record_key=record_key, rng=rng)

  def record_key_bounds(self, start: int, stop: int) -> tuple[int, int]:
    """Returns the record keys needed to serve shard positions [start, stop).

    Args:
      start: First position within the epoch of this shard.
      stop: End position (exclusive) within the epoch of this shard.

    Returns:
      Tuple (begin, end) of original-order record keys that contains every
      record served at the given positions.
    """
    begin, end = self._permutations[0].bounds(start, stop)
    return self._start + begin, self._start + end
