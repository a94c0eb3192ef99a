# Copyright (c) 2024 The Zephyr Project
# SPDX-License-Identifier: Apache-2.0
