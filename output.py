from collections import namedtuple

import numpy as np
import pandas as pd

EnergyMeasurement = namedtuple("EnergyMeasurement", ["host", "model", "consumption", "timestamp"])


class SimulationOutput:
    """Append-only sink of timestamped power measurements."""

    def __init__(self):
        self.measurements = []

    def add_timestamp_energy_consumption(self, hostname, model, consumption, timestamp):
        measurement = EnergyMeasurement(hostname, model, consumption, timestamp)
        self.measurements.append(measurement)
        return measurement

    def get_measurements(self, model=None, host=None):
        return [m for m in self.measurements
                if (model is None or m.model == model) and (host is None or m.host == host)]

    def energy_consumed(self, model, period):
        """
        Energy per host, in Wh, assuming each measurement holds for one period.

        :param model: power-accounting model tag
        :param period: measurement period in seconds
        :return: dict of hostname -> Wh
        """
        energy = {}
        for host in dict.fromkeys(m.host for m in self.get_measurements(model)):
            power = np.array([m.consumption for m in self.get_measurements(model, host)])
            energy[host] = float(np.sum(power) * period / 3600)
        return energy

    def to_dataframe(self):
        return pd.DataFrame(self.measurements, columns=EnergyMeasurement._fields)
