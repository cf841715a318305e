# nutsmp/services/mcmc_writer.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""Formats draws and run information for the sample and diagnostic writers."""

from __future__ import annotations

from typing import Optional

import logging

import numpy as np

import nutsmp.num as gnp
from nutsmp.callbacks import Writer
from nutsmp.config import get_logger
from nutsmp.mcmc.sampler import AdaptiveSampler, TransitionRecord
from nutsmp.model import Model


class MCMCWriter:
    def __init__(
        self,
        sample_writer: Optional[Writer] = None,
        diagnostic_writer: Optional[Writer] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.sample_writer = sample_writer if sample_writer is not None else Writer()
        self.diagnostic_writer = (
            diagnostic_writer if diagnostic_writer is not None else Writer()
        )
        self.logger = logger or get_logger()

    def write_sample_names(self, sampler: AdaptiveSampler, model: Model) -> None:
        names = ["lp__", "accept_stat__"]
        names += sampler.sampler_param_names()
        names += model.constrained_param_names()
        self.sample_writer.write_names(names)

    def write_sample_params(
        self,
        rng: np.random.Generator,
        record: TransitionRecord,
        sampler: AdaptiveSampler,
        model: Model,
    ) -> None:
        values = [record.state.log_prob, record.accept_stat]
        values += sampler.sampler_params(record)
        values += list(model.write_array(rng, record.state.cont_params))
        self.sample_writer.write_values(values)

    def write_diagnostic_names(self, sampler: AdaptiveSampler, model: Model) -> None:
        names = ["lp__", "accept_stat__"]
        names += sampler.sampler_param_names()
        names += model.unconstrained_param_names()
        self.diagnostic_writer.write_names(names)

    def write_diagnostic_params(
        self, record: TransitionRecord, sampler: AdaptiveSampler
    ) -> None:
        values = [record.state.log_prob, record.accept_stat]
        values += sampler.sampler_params(record)
        values += list(np.asarray(gnp.to_np(record.state.cont_params)).reshape(-1))
        self.diagnostic_writer.write_values(values)

    def write_adapt_finish(self, sampler: AdaptiveSampler) -> None:
        self.sample_writer.write_message("Adaptation terminated")
        sampler.write_sampler_state(self.sample_writer)

    def _write_timing(self, writer: Writer, warm_delta_t: float, sample_delta_t: float):
        title = " Elapsed Time: "
        pad = " " * len(title)
        writer.write_blank()
        writer.write_message(f"{title}{warm_delta_t:g} seconds (Warm-up)")
        writer.write_message(f"{pad}{sample_delta_t:g} seconds (Sampling)")
        writer.write_message(f"{pad}{warm_delta_t + sample_delta_t:g} seconds (Total)")
        writer.write_blank()

    def write_timing(self, warm_delta_t: float, sample_delta_t: float) -> None:
        self._write_timing(self.sample_writer, warm_delta_t, sample_delta_t)
        self._write_timing(self.diagnostic_writer, warm_delta_t, sample_delta_t)
        self.logger.info(
            "Elapsed time: %.3g seconds (warm-up), %.3g seconds (sampling), %.3g seconds (total)",
            warm_delta_t,
            sample_delta_t,
            warm_delta_t + sample_delta_t,
        )
