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
"""locshuffle metrics.

Metrics share the call surface of internal metric libraries so that a real
backend can be swapped in. The open source build records nothing.
"""


class NoOpMetric:
  """No-op metric accepting any fields."""

  def __init__(self, *args, **kwargs):
    del args, kwargs

  def IncrementBy(self, *args, **kwargs):
    del args, kwargs

  def Increment(self, *args, **kwargs):
    self.IncrementBy(1, *args, **kwargs)

  def Set(self, *args, **kwargs):
    del args, kwargs

  def Get(self, *args, **kwargs):
    del args, kwargs


class Metadata:
  """No-op metric metadata."""

  def __init__(self, *args, **kwargs):
    del args, kwargs


Counter = Metric = NoOpMetric


def get_monitoring_root() -> None:
  return None
