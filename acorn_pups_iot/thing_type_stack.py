'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
from typing import List
import json

import logging
_top_logger = logging.getLogger(__name__)

from aws_cdk import (
    aws_iot,
    Stack,
)
from constructs import Construct

from acorn_pups_iot.iot_definitions import IotStackConfig, MAX_SEARCHABLE_ATTRIBUTES, resource_tags
from acorn_pups_iot.parameter_store import ParameterStoreHelper, parameter_root


RECEIVER_THING_TYPE_DESCRIPTION = "IoT Thing Type for Acorn Pups ESP32-based smart receivers that plug into wall outlets and ring when RF buttons are pressed"
RECEIVER_SEARCHABLE_ATTRIBUTES = ["deviceName", "serialNumber", "macAddress"]

# RF buttons are NOT IoT things (they talk to receivers only) - published for documentation
RF_BUTTON_INFO = {
    "type": "RF_TRANSMITTER",
    "frequency": "315MHz_or_433MHz",
    "autoRecognition": True,
    "batteryType": "CR2032",
    "registrationRequired": False,
    "description": "RF buttons are simple transmitters that send signals to ESP32 receivers. They are not IoT devices and do not connect to AWS IoT Core."
}

DEVICE_ARCHITECTURE = {
    "receivers": {
        "type": "ESP32_RECEIVER",
        "connectivity": "WiFi_and_MQTT",
        "features": ["RF_reception", "speaker", "LED_indicators", "wall_outlet_power"],
        "iotIntegration": True
    },
    "buttons": {
        "type": "RF_TRANSMITTER",
        "connectivity": "RF_only",
        "features": ["button_press", "battery_powered", "LED_feedback"],
        "iotIntegration": False
    }
}


def validate_searchable_attributes(attributes:List[str])->List[str]:
    if len(attributes) > MAX_SEARCHABLE_ATTRIBUTES:
        raise ValueError(f"AWS IoT Thing Type supports up to {MAX_SEARCHABLE_ATTRIBUTES} searchable attributes, got {len(attributes)}: {attributes}")
    if len(set(attributes)) != len(attributes):
        raise ValueError(f"Searchable attributes must be unique: {attributes}")
    return list(attributes)


class IotThingTypeStack(Stack):
    ''' Thing Type for ESP32 receivers (the only Acorn Pups devices registered in IoT Core) '''

    def __init__(
        self,
        scope:Construct, construct_id:str,
        config:IotStackConfig,
        searchable_attributes:List[str]=None,
        **kwargs
        ) -> None:

        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        environment = config.environment
        self.searchable_attributes = validate_searchable_attributes(
            RECEIVER_SEARCHABLE_ATTRIBUTES if searchable_attributes is None else searchable_attributes
        )
        self.parameter_helper = ParameterStoreHelper(self, environment=environment, stack_name="thing-types")

        _top_logger.info(f"Define AcornPupsReceiver Thing Type for {environment}")
        self.acorn_pups_receiver_thing_type = aws_iot.CfnThingType(
            self, "AcornPupsReceiverThingType",
            thing_type_name=f"AcornPupsReceiver-{environment}",
            thing_type_properties=aws_iot.CfnThingType.ThingTypePropertiesProperty(
                thing_type_description=RECEIVER_THING_TYPE_DESCRIPTION,
                searchable_attributes=self.searchable_attributes
            ),
            tags=resource_tags(environment, "ThingType", {"DeviceType": "ESP32-Receiver"})
        )
        thing_type_name = self.acorn_pups_receiver_thing_type.thing_type_name
        thing_type_arn = self.acorn_pups_receiver_thing_type.attr_arn

        #############################################################
        # ***** Parameter Store *****
        # cross-stack and cross-repository integration
        #############################################################
        _top_logger.info(f"Publish Thing Type parameters")
        self.parameter_helper.create_parameter(
            "ReceiverThingTypeArnParam", thing_type_arn,
            "ARN of the AcornPupsReceiver Thing Type",
            f"{parameter_root(environment)}/iot-core/thing-type/receiver/arn"
        )
        self.parameter_helper.create_parameter(
            "ReceiverThingTypeNameParam", thing_type_name,
            "Name of the AcornPupsReceiver Thing Type",
            f"{parameter_root(environment)}/iot-core/thing-type/receiver/name"
        )
        self.parameter_helper.create_multiple_outputs_with_parameters([
            {
                "output_id": "ReceiverThingTypeArnOutput",
                "value": thing_type_arn,
                "description": "ARN of the AcornPupsReceiver Thing Type",
                "export_name": f"AcornPupsReceiverThingTypeArn-{environment}"
            },
            {
                "output_id": "ReceiverThingTypeNameOutput",
                "value": thing_type_name,
                "description": "Name of the AcornPupsReceiver Thing Type",
                "export_name": f"AcornPupsReceiverThingTypeName-{environment}"
            },
            {
                "output_id": "ReceiverThingTypeIdOutput",
                "value": self.acorn_pups_receiver_thing_type.ref,
                "description": "CloudFormation reference of the AcornPupsReceiver Thing Type",
                "export_name": f"AcornPupsReceiverThingTypeId-{environment}"
            },
        ])
        # Lambda functions (API repository) read these
        self.parameter_helper.create_parameter(
            "ReceiverThingTypeDescriptionParam", RECEIVER_THING_TYPE_DESCRIPTION,
            "Description of the AcornPupsReceiver Thing Type",
            f"{parameter_root(environment)}/iot-core/thing-type/receiver/description"
        )
        self.parameter_helper.create_parameter(
            "ReceiverSearchableAttributesParam", json.dumps(self.searchable_attributes),
            f"Searchable attributes for the AcornPupsReceiver Thing Type (AWS limit: {MAX_SEARCHABLE_ATTRIBUTES} max)",
            f"{parameter_root(environment)}/iot-core/thing-type/receiver/searchable-attributes"
        )
        self.parameter_helper.create_parameter(
            "RfButtonInfoParam", json.dumps(RF_BUTTON_INFO),
            "RF Button technical information for documentation",
            f"{parameter_root(environment)}/rf-buttons/info"
        )
        self.parameter_helper.create_parameter(
            "DeviceArchitectureParam", json.dumps(DEVICE_ARCHITECTURE),
            "Device architecture information for the Acorn Pups system",
            f"{parameter_root(environment)}/device-architecture"
        )
