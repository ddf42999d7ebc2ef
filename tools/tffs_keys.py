#!/usr/bin/env python3
"""
tffs_keys.py - Static key table for TFFS name-value stores

Maps the 16-bit record tags found in a TFFS partition (AVM Fritz!Box
persistent storage) to the key names used by the firmware environment.

Table order is significant:
    - Two entries may share a tag (0x01A3). Lookup by tag returns the
      first entry in declaration order.
    - Enumeration (``all_names``) and "show all" output follow it.

Usage:
    from tffs_keys import find_by_tag, all_names

    entry = find_by_tag(0x0101)     # KeyEntry(tag=0x0101, name='productid')
    for name in all_names():
        print(name)
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class KeyEntry:
    """One row of the key table."""
    tag: int
    name: str


KEYS: Tuple[KeyEntry, ...] = (
    KeyEntry(0x0100, 'hw_revision'),
    KeyEntry(0x0101, 'productid'),
    KeyEntry(0x0102, 'serialnumber'),
    KeyEntry(0x0103, 'dmc'),
    KeyEntry(0x0104, 'hw_subrevision'),
    KeyEntry(0x0182, 'bootloader_version'),
    KeyEntry(0x0184, 'macbluetooth'),
    KeyEntry(0x0188, 'maca'),
    KeyEntry(0x0189, 'macb'),
    KeyEntry(0x018A, 'macwlan'),
    KeyEntry(0x018B, 'macdsl'),
    KeyEntry(0x018F, 'my_ipaddress'),
    KeyEntry(0x0195, 'macwlan2'),
    KeyEntry(0x01A3, 'usb_device_id'),
    KeyEntry(0x01A3, 'usb_revision_id'),
    KeyEntry(0x01A4, 'usb_device_name'),
    KeyEntry(0x01A5, 'usb_manufacturer_name'),
    KeyEntry(0x01A6, 'firmware_version'),
    KeyEntry(0x01A7, 'language'),
    KeyEntry(0x01A8, 'country'),
    KeyEntry(0x01A9, 'annex'),
    KeyEntry(0x01AB, 'wlan_key'),
    KeyEntry(0x01AD, 'http_key'),
    KeyEntry(0x01B8, 'wlan_cal'),
    KeyEntry(0x01FD, 'urlader_version'),
)


def find_by_tag(tag: int) -> Optional[KeyEntry]:
    """Return the first entry whose tag matches, or None."""
    for entry in KEYS:
        if entry.tag == tag:
            return entry
    return None


def find_by_name(name: str) -> Optional[KeyEntry]:
    """Return the entry with exactly this name, or None."""
    for entry in KEYS:
        if entry.name == name:
            return entry
    return None


def all_names() -> Tuple[str, ...]:
    """All registered key names in table order."""
    return tuple(entry.name for entry in KEYS)
