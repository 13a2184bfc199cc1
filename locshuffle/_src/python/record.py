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
"""Define record metadata emitted by locshuffle samplers."""

import dataclasses
from typing import Optional
import numpy as np


@dataclasses.dataclass(slots=True)
class RecordMetadata:
  """RecordMetadata tells a reader which record to load next.

  Attributes:
    index: Global index that was requested from the sampler.
    record_key: Original-order position of the record in the corpus.
    rng: Per-record random generator for random preprocessing, if the sampler
      was seeded.
  """

  index: int
  record_key: Optional[int] = None
  rng: Optional[np.random.Generator] = None

  def __str__(self):
    return (
        f"RecordMetadata(index={self.index}, record_key={self.record_key}, "
        f"rng={self.rng})"
    )
