''' Unit tests for AcornPupsReceiver Thing Type stack '''
import unittest
import json

import aws_cdk as core
import aws_cdk.assertions as assertions

from acorn_pups_iot.iot_definitions import IotStackConfig
from acorn_pups_iot.thing_type_stack import IotThingTypeStack, RECEIVER_THING_TYPE_DESCRIPTION, validate_searchable_attributes


TEST_ENV = core.Environment(account="123456789012", region="us-east-1")


class TestIotThingTypeStack(unittest.TestCase):

    def setUp(self):
        self.app = core.App()
        self.config = IotStackConfig(environment="test", log_level="DEBUG")
        self.stack = IotThingTypeStack(self.app, "TestThingTypeStack", self.config, env=TEST_ENV)
        self.template = assertions.Template.from_stack(self.stack)

    def test_receiver_thing_type(self):
        self.template.resource_count_is("AWS::IoT::ThingType", 1)
        self.template.has_resource_properties("AWS::IoT::ThingType", {
            "ThingTypeName": "AcornPupsReceiver-test",
            "ThingTypeProperties": {
                "ThingTypeDescription": RECEIVER_THING_TYPE_DESCRIPTION,
                "SearchableAttributes": ["deviceName", "serialNumber", "macAddress"]
            }
        })
        self.assertEqual(self.stack.acorn_pups_receiver_thing_type.thing_type_name, "AcornPupsReceiver-test")

    def test_thing_type_tags(self):
        self.template.has_resource_properties("AWS::IoT::ThingType", {
            "Tags": assertions.Match.array_with([
                {"Key": "Component", "Value": "ThingType"},
                {"Key": "DeviceType", "Value": "ESP32-Receiver"},
            ])
        })

    def test_parameters(self):
        for path in [
            "/acorn-pups/test/iot-core/thing-type/receiver/arn",
            "/acorn-pups/test/iot-core/thing-type/receiver/name",
            "/acorn-pups/test/iot-core/thing-type/receiver/description",
            "/acorn-pups/test/rf-buttons/info",
            "/acorn-pups/test/device-architecture",
        ]:
            self.template.has_resource_properties("AWS::SSM::Parameter", {
                "Name": path,
                "Type": "String",
                "Tier": "Standard"
            })
        self.template.has_resource_properties("AWS::SSM::Parameter", {
            "Name": "/acorn-pups/test/iot-core/thing-type/receiver/searchable-attributes",
            "Value": json.dumps(["deviceName", "serialNumber", "macAddress"])
        })

    def test_outputs(self):
        self.template.has_output("ReceiverThingTypeNameOutput", {
            "Value": "AcornPupsReceiver-test",
            "Export": {"Name": "AcornPupsReceiverThingTypeName-test"}
        })
        self.template.has_output("ReceiverThingTypeArnOutput", {})
        self.template.has_output("ReceiverThingTypeIdOutput", {})
        # every output has generated parameter
        self.template.has_resource_properties("AWS::SSM::Parameter", {
            "Name": "/acorn-pups/test/iot-outputs/thing-types/receiver-thing-type-name-output",
            "Value": "AcornPupsReceiver-test",
            "Description": "[thing-types] Name of the AcornPupsReceiver Thing Type"
        })

    def test_too_many_searchable_attributes(self):
        with self.assertRaises(ValueError):
            IotThingTypeStack(
                core.App(), "TooManyAttributesStack", self.config,
                searchable_attributes=["deviceName", "serialNumber", "macAddress", "firmwareVersion"],
                env=TEST_ENV
            )

    def test_validate_searchable_attributes(self):
        self.assertEqual(validate_searchable_attributes(["a", "b"]), ["a", "b"])
        self.assertEqual(validate_searchable_attributes([]), [])
        with self.assertRaises(ValueError):
            validate_searchable_attributes(["a", "a"])


if __name__ == '__main__':
    unittest.main()
