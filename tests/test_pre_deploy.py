''' Unit tests for pre-deploy prerequisites check
    boto3 ssm client is stubbed with botocore Stubber
'''
import unittest
from unittest import mock
import copy

import boto3
from botocore.stub import Stubber

import pre_deploy
from common_project_config import ProjectConfig

from test_project_config import TEST_PROJECT_CONFIG


LAMBDA_PARAMETERS = [
    "/acorn-pups/dev/lambda-functions/handleButtonPress/arn",
    "/acorn-pups/dev/lambda-functions/updateDeviceStatus/arn",
    "/acorn-pups/dev/lambda-functions/resetDevice/arn",
    "/acorn-pups/dev/lambda-functions/updateDeviceSettings/arn",
]
ROLE_PARAMETER = "/acorn-pups/dev/iot-core/rule-execution-role/arn"


def found_parameter(name:str)->dict:
    return {"Name": name, "Type": "String", "Value": f"arn:aws:lambda:us-east-1:123456789012:function:{name.split('/')[-2]}"}


class TestMissingPrerequisites(unittest.TestCase):

    def setUp(self):
        self.ssm_client = boto3.client("ssm", region_name="us-east-1", aws_access_key_id="testing", aws_secret_access_key="testing")
        self.stubber = Stubber(self.ssm_client)

    def test_required_parameters(self):
        self.assertEqual(pre_deploy.required_parameters("dev"), LAMBDA_PARAMETERS + [ROLE_PARAMETER])
        self.assertEqual(pre_deploy.required_parameters("dev", include_role=False), LAMBDA_PARAMETERS)

    def test_all_available(self):
        self.stubber.add_response(
            "get_parameters",
            {"Parameters": [found_parameter(n) for n in LAMBDA_PARAMETERS + [ROLE_PARAMETER]]},
            {"Names": LAMBDA_PARAMETERS + [ROLE_PARAMETER]}
        )
        with self.stubber:
            self.assertEqual(pre_deploy.missing_prerequisites(self.ssm_client, "dev"), [])
        self.stubber.assert_no_pending_responses()

    def test_missing_parameters(self):
        self.stubber.add_response(
            "get_parameters",
            {
                "Parameters": [found_parameter(n) for n in LAMBDA_PARAMETERS[1:3]],
                "InvalidParameters": [ROLE_PARAMETER, LAMBDA_PARAMETERS[3], LAMBDA_PARAMETERS[0]]
            },
            {"Names": LAMBDA_PARAMETERS + [ROLE_PARAMETER]}
        )
        with self.stubber:
            self.assertEqual(
                pre_deploy.missing_prerequisites(self.ssm_client, "dev"),
                [LAMBDA_PARAMETERS[0], LAMBDA_PARAMETERS[3], ROLE_PARAMETER]
            )

    def test_role_managed_by_project(self):
        self.stubber.add_response(
            "get_parameters",
            {"Parameters": [found_parameter(n) for n in LAMBDA_PARAMETERS]},
            {"Names": LAMBDA_PARAMETERS}
        )
        with self.stubber:
            self.assertEqual(pre_deploy.missing_prerequisites(self.ssm_client, "dev", include_role=False), [])


class TestRunCheck(unittest.TestCase):

    def setUp(self):
        self.ssm_client = boto3.client("ssm", region_name="us-east-1", aws_access_key_id="testing", aws_secret_access_key="testing")
        self.stubber = Stubber(self.ssm_client)
        config_data = copy.deepcopy(TEST_PROJECT_CONFIG)
        config_data["manage_device_policy"] = False
        self.pr_config = ProjectConfig(project_config=config_data, environment_name="dev")

    def run_check(self, profile=None)->int:
        with mock.patch("pre_deploy.ProjectConfig.create_from_file", return_value=self.pr_config), \
                mock.patch("pre_deploy.session.Session") as session_class, \
                self.stubber:
            session_class.return_value.client.return_value = self.ssm_client
            result = pre_deploy.run_check("dev", profile)
        session_class.assert_called_once_with(profile_name=profile or "acorn", region_name="eu-west-1")
        return result

    def test_check_failed(self):
        self.stubber.add_response(
            "get_parameters",
            {"Parameters": [], "InvalidParameters": LAMBDA_PARAMETERS + [ROLE_PARAMETER]},
            {"Names": LAMBDA_PARAMETERS + [ROLE_PARAMETER]}
        )
        self.assertEqual(self.run_check(), 1)

    def test_check_passed(self):
        self.stubber.add_response(
            "get_parameters",
            {"Parameters": [found_parameter(n) for n in LAMBDA_PARAMETERS + [ROLE_PARAMETER]]},
            {"Names": LAMBDA_PARAMETERS + [ROLE_PARAMETER]}
        )
        self.assertEqual(self.run_check(profile="other"), 0)


if __name__ == '__main__':
    unittest.main()
