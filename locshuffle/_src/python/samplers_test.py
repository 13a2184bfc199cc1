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
"""Tests for samplers."""
from collections.abc import Sequence

from absl.testing import absltest
from absl.testing import parameterized
from locshuffle._src.core import sharding
from locshuffle._src.python import record
from locshuffle._src.python import samplers
import numpy as np


def _get_all_metadata(
    sampler: samplers.Sampler, shard_options: sharding.ShardOptions
) -> Sequence[record.RecordMetadata]:
  metadata = []
  i = shard_options.shard_index
  while True:
    try:
      metadata.append(sampler[i])
    except IndexError:
      break
    i += shard_options.shard_count
  return metadata


class WindowedIndexSamplerTest(parameterized.TestCase):

  @parameterized.named_parameters(
      {'testcase_name': 'no_records', 'num_records': 0},
      {'testcase_name': 'negative_records', 'num_records': -18},
  )
  def test_with_invalid_number_records(self, num_records: int):
    with self.assertRaises(ValueError):
      samplers.WindowedIndexSampler(num_records=num_records, window_size=4)

  def test_with_invalid_number_epochs(self):
    with self.assertRaises(ValueError):
      samplers.WindowedIndexSampler(
          num_records=10, window_size=4, num_epochs=0
      )

  def test_with_invalid_seed(self):
    with self.assertRaises(ValueError):
      samplers.WindowedIndexSampler(num_records=10, window_size=4, seed=-1)
    with self.assertRaises(TypeError):
      samplers.WindowedIndexSampler(num_records=10, window_size=4, seed=1.0)

  def test_empty_shard(self):
    with self.assertRaises(ValueError):
      samplers.WindowedIndexSampler(
          num_records=2,
          window_size=4,
          shard_options=sharding.ShardOptions(
              shard_index=2, shard_count=3, drop_remainder=False
          ),
      )

  @parameterized.named_parameters(
      {'testcase_name': 'negative_index', 'index': -1},
      {'testcase_name': 'too_large_index', 'index': 40},
  )
  def test_index_out_of_bounds_raises_index_error(self, index: int):
    sampler = samplers.WindowedIndexSampler(
        num_records=20, window_size=4, num_epochs=2
    )
    with self.assertRaises(IndexError):
      _ = sampler[index]

  def test_each_epoch_is_windowed_permutation(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=100, window_size=10, num_epochs=3, seed=7
    )
    metadata = _get_all_metadata(sampler, sharding.NoSharding())
    self.assertLen(metadata, 300)
    epochs = [
        [m.record_key for m in metadata[e * 100 : (e + 1) * 100]]
        for e in range(3)
    ]
    for keys in epochs:
      self.assertCountEqual(keys, range(100))
      for position, key in enumerate(keys):
        self.assertLessEqual(position, key + 5)
        self.assertLess(key, position + 5)
    self.assertNotEqual(epochs[0], epochs[1])
    self.assertEqual([m.index for m in metadata], list(range(300)))

  def test_epochs_use_consecutive_seeds(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=50, window_size=8, seed=3
    )
    keys = [sampler[i].record_key for i in range(50, 100)]
    self.assertEqual(keys, sampler.permutation_for_epoch(1).get(4).tolist())

  def test_without_window_is_sequential(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=10, window_size=0, num_epochs=2
    )
    metadata = _get_all_metadata(sampler, sharding.NoSharding())
    self.assertEqual([m.record_key for m in metadata], list(range(10)) * 2)

  @parameterized.parameters(
      # shard_index, shard_count, expected shard range.
      (0, 3, (0, 4)),
      (1, 3, (4, 7)),
      (2, 3, (7, 10)),
  )
  def test_sharding(self, shard_index, shard_count, expected_range):
    shard_options = sharding.ShardOptions(
        shard_index=shard_index, shard_count=shard_count
    )
    sampler = samplers.WindowedIndexSampler(
        num_records=10,
        window_size=4,
        shard_options=shard_options,
        num_epochs=1,
        seed=1,
    )
    self.assertEqual(sampler.shard_range, expected_range)
    metadata = _get_all_metadata(sampler, shard_options)
    self.assertCountEqual(
        [m.record_key for m in metadata], range(*expected_range)
    )
    self.assertEqual(
        [m.index for m in metadata],
        list(
            range(
                shard_index,
                shard_count * (expected_range[1] - expected_range[0]),
                shard_count,
            )
        ),
    )

  def test_record_key_bounds(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=100,
        window_size=10,
        shard_options=sharding.ShardOptions(shard_index=1, shard_count=2),
    )
    self.assertEqual(sampler.record_key_bounds(0, 10), (50, 65))
    self.assertEqual(sampler.record_key_bounds(20, 30), (65, 85))
    self.assertEqual(sampler.record_key_bounds(45, 50), (90, 100))

  def test_accepts_numpy_integer_seed(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=30, window_size=6, seed=np.int64(4)
    )
    reference = samplers.WindowedIndexSampler(
        num_records=30, window_size=6, seed=4
    )
    self.assertEqual(
        [sampler[i].record_key for i in range(60)],
        [reference[i].record_key for i in range(60)],
    )

  def test_alternating_adjacent_epochs_do_not_regenerate(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=40, window_size=8, seed=2
    )
    tail_of_first_epoch = sampler[39].record_key
    head_of_second_epoch = sampler[40].record_key
    even_stats = sampler.permutation_for_epoch(0).last_stats
    odd_stats = sampler.permutation_for_epoch(1).last_stats
    self.assertEqual(even_stats.seed, 2)
    self.assertEqual(odd_stats.seed, 3)
    for _ in range(3):
      self.assertEqual(sampler[39].record_key, tail_of_first_epoch)
      self.assertEqual(sampler[40].record_key, head_of_second_epoch)
    # Regeneration replaces the stats object.
    self.assertIs(sampler.permutation_for_epoch(0).last_stats, even_stats)
    self.assertIs(sampler.permutation_for_epoch(1).last_stats, odd_stats)

  def test_epoch_two_reuses_even_store(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=40, window_size=8, seed=2
    )
    keys = [sampler[i].record_key for i in range(80, 120)]
    self.assertEqual(sampler.permutation_for_epoch(2).current_seed(), 4)
    self.assertEqual(
        keys, sampler.permutation_for_epoch(0).get(4).tolist()
    )

  def test_rng_is_deterministic(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=10, window_size=4, seed=5
    )
    np.testing.assert_array_equal(
        sampler[3].rng.integers(0, 1000, 5),
        sampler[3].rng.integers(0, 1000, 5),
    )

  def test_forwards_permutation_kwargs(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=10,
        window_size=4,
        bit_generator='pcg64',
        max_swap_attempts=2,
    )
    self.assertEqual(sampler.permutation_for_epoch(0).bit_generator, 'pcg64')
    self.assertEqual(sampler.permutation_for_epoch(0).max_swap_attempts, 2)

  def test_repr(self):
    sampler = samplers.WindowedIndexSampler(
        num_records=10, window_size=4, num_epochs=2, seed=3
    )
    self.assertEqual(
        repr(sampler),
        'WindowedIndexSampler(num_records=10, window_size=4, '
        'shard_options=NoSharding(shard_index=0, shard_count=1, '
        'drop_remainder=False), num_epochs=2, seed=3)',
    )


if __name__ == '__main__':
  absltest.main()
