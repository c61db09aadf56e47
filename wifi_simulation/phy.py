"""HE (802.11ax) PHY timing helpers.

Only what the cell and the statistics need: data rates, PPDU durations and the
conversion between an HE TB PPDU duration and the UL Length subfield of a
Trigger Frame. All times are in seconds.
"""
import math
from typing import Dict, Tuple

from wifi_simulation.frames import PreambleType, TxVector, WifiPsduMap

# Maximum PPDU duration (aPPDUMaxTime), seconds.
PPDU_MAX_TIME = 5.484e-3

VALID_CHANNEL_WIDTHS = (20, 40, 80, 160)
VALID_GUARD_INTERVALS = (800, 1600, 3200)

# channel width (MHz) -> channel number in the 5 GHz band
CHANNEL_NUMBERS: Dict[int, int] = {20: 36, 40: 38, 80: 42, 160: 50}

# MCS -> (coded bits per subcarrier, coding rate)
HE_MCS: Dict[int, Tuple[int, float]] = {
    0: (1, 1 / 2),
    1: (2, 1 / 2),
    2: (2, 3 / 4),
    3: (4, 1 / 2),
    4: (4, 3 / 4),
    5: (6, 2 / 3),
    6: (6, 3 / 4),
    7: (6, 5 / 6),
    8: (8, 3 / 4),
    9: (8, 5 / 6),
    10: (10, 3 / 4),
    11: (10, 5 / 6),
}

# full-band data subcarriers per channel width
FULL_BAND_DATA_SUBCARRIERS: Dict[int, int] = {20: 234, 40: 468, 80: 980, 160: 1960}

# (data subcarriers of the RU, number of such RUs fitting in 20 MHz)
_RU_TYPES_PER_20MHZ = ((234, 1), (102, 2), (48, 4), (24, 9))

_L_PREAMBLE = 8e-6 + 8e-6 + 4e-6  # L-STF + L-LTF + L-SIG
_SERVICE_AND_TAIL_BITS = 16 + 6


def symbol_duration(guard_interval_ns: int) -> float:
    return 12.8e-6 + guard_interval_ns * 1e-9


def data_subcarriers(tx_vector: TxVector) -> int:
    if tx_vector.ru_data_subcarriers is not None:
        return tx_vector.ru_data_subcarriers
    return FULL_BAND_DATA_SUBCARRIERS[tx_vector.channel_width]


def max_n_rus(channel_width: int) -> int:
    """Number of the smallest RUs (26 tones) in the channel."""
    return _RU_TYPES_PER_20MHZ[-1][1] * (channel_width // 20)


def ru_data_subcarriers(channel_width: int, n_rus: int) -> int:
    """Largest RU size such that `n_rus` of them fit in the channel."""
    assert n_rus >= 1
    if n_rus == 1:
        return FULL_BAND_DATA_SUBCARRIERS[channel_width]
    n20 = channel_width // 20
    for tones, per_20 in _RU_TYPES_PER_20MHZ:
        if per_20 * n20 >= n_rus:
            return tones
    raise ValueError(f"{n_rus} RUs do not fit in a {channel_width} MHz channel")


def data_bits_per_symbol(mcs: int, n_sd: int, nss: int = 1) -> float:
    bits, rate = HE_MCS[mcs]
    return n_sd * bits * rate * nss


def he_data_rate(mcs: int, channel_width: int, guard_interval_ns: int, nss: int = 1) -> float:
    """HE PHY rate in bit/s for a full-band allocation."""
    if mcs not in HE_MCS:
        raise ValueError(f"Invalid HE MCS {mcs}")
    n_sd = FULL_BAND_DATA_SUBCARRIERS[channel_width]
    return data_bits_per_symbol(mcs, n_sd, nss) / symbol_duration(guard_interval_ns)


def preamble_and_header_duration(tx_vector: TxVector, n_users: int = 1) -> float:
    he_ltf = 6.4e-6 + tx_vector.guard_interval * 1e-9
    duration = _L_PREAMBLE + 4e-6 + 8e-6  # RL-SIG + HE-SIG-A
    if tx_vector.preamble == PreambleType.HE_TB:
        duration += 8e-6  # HE-STF of an HE TB PPDU
    else:
        duration += 4e-6
    if tx_vector.preamble == PreambleType.HE_MU:
        duration += 4e-6 * math.ceil(n_users / 2)  # HE-SIG-B
    return duration + he_ltf * tx_vector.nss


def data_duration(size_bytes: int, tx_vector: TxVector, n_sd: int | None = None) -> float:
    n_sd = data_subcarriers(tx_vector) if n_sd is None else n_sd
    n_dbps = data_bits_per_symbol(tx_vector.mcs, n_sd, tx_vector.nss)
    n_symbols = math.ceil((_SERVICE_AND_TAIL_BITS + 8 * size_bytes) / n_dbps)
    return n_symbols * symbol_duration(tx_vector.guard_interval)


def calculate_tx_duration(psdu_map: WifiPsduMap, tx_vector: TxVector) -> float:
    """Duration of the PPDU carrying `psdu_map`; an HE MU PPDU lasts as long as its longest user."""
    assert psdu_map
    preamble = preamble_and_header_duration(tx_vector, n_users=max(1, len(tx_vector.he_mu_user_info)))
    if tx_vector.is_dl_mu():
        n_sd = ru_data_subcarriers(tx_vector.channel_width, max(1, len(tx_vector.he_mu_user_info)))
        longest = max(data_duration(psdu.get_size(), tx_vector, n_sd) for psdu in psdu_map.values())
        return preamble + longest
    (psdu,) = psdu_map.values()
    return preamble + data_duration(psdu.get_size(), tx_vector)


def he_tb_duration_to_lsig_length(duration: float, tx_vector: TxVector) -> int:
    """UL Length subfield value granting an HE TB PPDU of (at most) `duration`."""
    m = 2
    usec = round(duration * 1e6, 3)
    return int(math.ceil((usec - 20) / 4) * 3 - 3 - m)


def lsig_length_to_he_tb_duration(length: int, tx_vector: TxVector) -> float:
    """HE TB PPDU duration corresponding to an UL Length subfield value."""
    m = 2
    t_symbol = symbol_duration(tx_vector.guard_interval)
    preamble = preamble_and_header_duration(tx_vector)
    calculated = (math.ceil((length + 3 + m) / 3) * 4 + 20) * 1e-6
    n_symbols = math.floor(round((calculated - preamble) / t_symbol, 9))
    return preamble + n_symbols * t_symbol
