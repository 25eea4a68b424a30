# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from enum import Enum
from typing import Any, Dict, List, Union, Type
import copy

OPTION_TYPES = Union[Type[int], Type[bool], Type[float], Type[str], Type[Enum]]


class OptionProp:
    """
    Registered option
    """

    def __init__(self, prop_name: str, units: str, tpe: OPTION_TYPES, definition: str):
        """

        :param prop_name: name of the attribute
        :param units: units of the option
        :param tpe: data type [Type[int], Type[bool], Type[float], Type[str], or an Enum]
        :param definition: Definition of the option
        """
        self.name = prop_name

        self.units = units

        self.tpe = tpe

        self.definition = definition

    def parse(self, value: Any) -> Any:
        """
        Convert a serialized value to the option type
        :param value: value from a dictionary
        :return: typed value
        """
        if isinstance(value, self.tpe):
            return value

        if issubclass(self.tpe, Enum):
            if isinstance(value, str):
                try:
                    return self.tpe[value]
                except KeyError:
                    return self.tpe(value)
            return self.tpe(value)

        return self.tpe(value)

    def __str__(self):
        return self.name


class OptionsTemplate:
    """
    Options template
    """

    def __init__(self, name: str):
        """

        :param name:
        """
        self.name = name

        self.registered_properties: Dict[str, OptionProp] = dict()

        self.property_list: List[OptionProp] = list()

    def register(self, key: str, tpe: OPTION_TYPES, units: str = '', definition: str = ''):
        """
        Register option
        The attribute must exist
        :param key: attribute name
        :param tpe: type of the attribute
        :param units: string with the declared units
        :param definition: Definition of the option
        """
        assert (hasattr(self, key))  # the property must exist, this avoids bugs when registering

        if key in self.registered_properties.keys():
            raise Exception(f"Property {key} already registered!")

        prop = OptionProp(prop_name=key, units=units, tpe=tpe, definition=definition)

        self.registered_properties[key] = prop

        self.property_list.append(prop)

    def get_headers(self) -> List[str]:
        """
        Return a list of headers
        """
        return list(self.registered_properties.keys())

    def to_dict(self) -> Dict[str, Union[str, int, float, bool]]:
        """
        Serializable representation, the enums are stored by name
        :return: dictionary
        """
        data = dict()
        for name, prop in self.registered_properties.items():
            obj = getattr(self, name)
            data[name] = obj.name if isinstance(obj, Enum) else obj
        return data

    def parse_dict(self, data: Dict[str, Any]):
        """
        Set the registered options present in a dictionary
        :param data: dictionary such as the one given by to_dict
        """
        for key, value in data.items():
            prop = self.registered_properties.get(key, None)
            if prop is None:
                raise KeyError(f"{self.name} has no option {key}")
            setattr(self, key, prop.parse(value))

    def copy(self):
        """
        Deep copy of the options
        """
        return copy.deepcopy(self)

    def __str__(self):
        return self.name
