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
"""Public API for locshuffle."""

# pylint: disable=g-importing-member
# pylint: disable=g-multiple-import
# pylint: disable=unused-import

from locshuffle._src.core.bit_generators import BitGeneratorInfo
from locshuffle._src.core.config import config
from locshuffle._src.core.sharding import NoSharding, ShardOptions, even_split
from locshuffle._src.python.locshuffle_logging import (
    set_process_identifier_prefix,
    shard_identifier,
)
from locshuffle._src.python.record import RecordMetadata
from locshuffle._src.python.samplers import (
    Sampler,
    WindowedIndexSampler,
)
from locshuffle._src.python.window_permutation import (
    CapacityError,
    ConfigurationError,
    GenerationStats,
    IdentityMap,
    INVALID_SEED,
    WindowedPermutation,
    WindowInvariantError,
    count_window_violations,
    smallest_index_dtype,
    window_bounds,
)

__version__ = "0.1.0"
