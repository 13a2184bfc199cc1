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
"""Helpers for making locshuffle log messages readable in multi-process jobs.

Permutation generation logs a short report per seed. When every training
process generates the permutation of its own shard the reports interleave, so
a prefix identifying the process can be added to every message:

  locshuffle_logging.set_process_identifier_prefix(
      locshuffle_logging.shard_identifier(shard_options)
  )
"""

import logging
from absl import logging as absl_logging
from locshuffle._src.core import sharding


def shard_identifier(shard_options: sharding.ShardOptions) -> str:
  return f'shard {shard_options.shard_index}/{shard_options.shard_count}'


def set_process_identifier_prefix(identifier: str) -> None:
  """Prefixes all new absl log messages with `[identifier]`."""
  log_formatter = logging.Formatter(f'[{identifier}] %(message)s')
  absl_logging.get_absl_handler().setFormatter(log_formatter)
