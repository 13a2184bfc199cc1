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
"""Handle locshuffle config options.

Config options can be set via flags starting with '--locshuffle_' or by calling
`locshuffle.config.update(name, value)`.
"""
from typing import Any

from absl import flags
from locshuffle._src.core import monitoring

_MAX_SWAP_ATTEMPTS = flags.DEFINE_integer(
    "locshuffle_max_swap_attempts",
    5,
    (
        "Number of candidate positions drawn for every element while generating"
        " a windowed permutation. If none of them satisfies the window"
        " condition for both swapped elements the element stays in place."
    ),
)

_MAX_INDEX_BITS = flags.DEFINE_enum(
    "locshuffle_max_index_bits",
    "32",
    ["8", "16", "32", "64"],
    (
        "Widest unsigned integer type used to store permutation entries. The"
        " narrowest type that can represent the corpus length is chosen, and"
        " corpora that need more bits than this are rejected."
    ),
)

_BIT_GENERATOR = flags.DEFINE_enum(
    "locshuffle_bit_generator",
    "philox",
    ["philox", "pcg64", "pcg64dxsm", "mt19937"],
    "NumPy bit generator used to draw swap candidates.",
)

_GENERATION_CHUNK_SIZE = flags.DEFINE_integer(
    "locshuffle_generation_chunk_size",
    65536,
    (
        "Number of elements for which swap candidates are drawn in a single"
        " vectorized call. Does not affect the generated permutation, only"
        " peak memory and speed."
    ),
)

_RAISE_ON_WINDOW_VIOLATION = flags.DEFINE_bool(
    "locshuffle_raise_on_window_violation",
    False,
    (
        "If True, raise WindowInvariantError when a generated permutation moves"
        " an element outside of its window. Otherwise violations are only"
        " logged and reported in the generation stats."
    ),
)

_LOCSHUFFLE_FLAGS = (
    _MAX_SWAP_ATTEMPTS,
    _MAX_INDEX_BITS,
    _BIT_GENERATOR,
    _GENERATION_CHUNK_SIZE,
    _RAISE_ON_WINDOW_VIOLATION,
)

_config_usage_metric = monitoring.Metric(
    "/locshuffle/config",
    value_type=int,
    metadata=monitoring.Metadata(
        description="Non-default locshuffle config option metric."
    ),
    root=monitoring.get_monitoring_root(),
    fields=[("name", str)],
)


class Config:
  """Class for holding current locshuffle configuration."""

  # Loosen the static type checking requirements.
  _HAS_DYNAMIC_ATTRIBUTES = True

  def __getattr__(self, name: str) -> Any:
    flag_name = f"locshuffle_{name}"
    if any(f.name == flag_name for f in _LOCSHUFFLE_FLAGS):
      value = getattr(flags.FLAGS, flag_name)
      self._record_usage(flag_name, value)
      return value
    raise ValueError(f"Unrecognized config option: {name}")

  def get_or_default(self, name: str) -> Any:
    """Returns the value if flags are parsed or the current flag value.

    Before the command line is parsed absl refuses attribute access on
    `flags.FLAGS`. The value held by the flag object is the default, or
    whatever was set through `update()` or `flagsaver`.
    """
    try:
      return self.__getattr__(name)
    except flags.UnparsedFlagAccessError:
      flag_name = f"locshuffle_{name}"
      return flags.FLAGS[flag_name].value

  def __setattr__(self, name: str, value: Any):
    raise ValueError("Please use update().")

  def update(self, name: str, value: Any):
    flag_name = f"locshuffle_{name}"
    if any(f.name == flag_name for f in _LOCSHUFFLE_FLAGS):
      setattr(flags.FLAGS, flag_name, value)
      return
    raise ValueError(f"Unrecognized config option: {name}")

  def _record_usage(self, flag_name: str, value: Any) -> None:
    if isinstance(value, int):
      int_value = value
    else:
      int_value = int(value != flags.FLAGS[flag_name].default)
    _config_usage_metric.Set(int_value, flag_name)


config = Config()
