'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
import json

import logging
_top_logger = logging.getLogger(__name__)

from aws_cdk import (
    aws_s3,
    Aws,
    Duration,
    RemovalPolicy,
    Stack,
    Tags,
)
from constructs import Construct

from acorn_pups_iot.iot_definitions import IotStackConfig, PROJECT_NAME, SERVICE_NAME
from acorn_pups_iot.parameter_store import ParameterStoreHelper, parameter_root


AMAZON_ROOT_CA_URL = "https://www.amazontrust.com/repository/AmazonRootCA1.pem"

RECEIVER_CERTIFICATE_FILES = {
    "deviceCertificate": {
        "format": "X.509 PEM",
        "description": "Device-specific certificate generated by AWS IoT Core",
        "usage": "Device authentication and authorization"
    },
    "privateKey": {
        "format": "RSA PEM",
        "description": "Private key corresponding to device certificate",
        "usage": "TLS handshake and message signing"
    },
    "amazonRootCA": {
        "format": "X.509 PEM",
        "description": "Amazon Root CA 1 certificate",
        "url": AMAZON_ROOT_CA_URL,
        "usage": "TLS certificate validation"
    }
}

AMAZON_ROOT_CA_INFO = {
    "name": "Amazon Root CA 1",
    "url": AMAZON_ROOT_CA_URL,
    "fingerprint": "SHA256:++KUrOSCJlM8ZbQGz6HRgN2FXI4xjvuZfV9pDYTqHzo=",
    "description": "Amazon Root CA certificate for ESP32 receiver AWS IoT Core connections",
    "usage": "TLS certificate validation for MQTT over TLS"
}

CERTIFICATE_SECURITY_BEST_PRACTICES = {
    "storage": "Store certificates in ESP32 secure flash partition",
    "rotation": "Implement certificate rotation before expiration",
    "backup": "Keep backup certificates in S3 for recovery",
    "monitoring": "Monitor certificate expiration dates",
    "revoking": "Implement certificate revocation for compromised devices"
}


def certificate_generation_workflow(environment:str)->dict:
    ''' steps executed by the registration Lambda (API repository) for every new receiver '''
    return {
        "method": "AWS_CLI_SDK",
        "description": "Certificate generation workflow for ESP32 receivers during device registration",
        "steps": [
            {
                "step": 1,
                "command": "aws iot create-keys-and-certificate --set-as-active",
                "description": "Generate AWS-managed X.509 certificate and private key"
            },
            {
                "step": 2,
                "command": f"aws iot create-thing --thing-name <deviceId> --thing-type-name AcornPupsReceiver-{environment}",
                "description": "Create IoT Thing for ESP32 receiver"
            },
            {
                "step": 3,
                "command": f"aws iot attach-policy --policy-name AcornPupsReceiverPolicy-{environment} --target <certificateArn>",
                "description": "Attach receiver policy to certificate"
            },
            {
                "step": 4,
                "command": "aws iot attach-thing-principal --thing-name <deviceId> --principal <certificateArn>",
                "description": "Attach certificate to Thing as principal"
            }
        ],
        "documentation": "https://docs.aws.amazon.com/iot/latest/developerguide/create-device-certificate.html"
    }


class CertificateManagementStack(Stack):
    '''
    S3 bucket for device metadata and backup certificates
    plus certificate related configuration for the registration workflow.
    Certificates themselves are AWS IoT Core managed and created at device registration time.
    '''

    def __init__(
        self,
        scope:Construct, construct_id:str,
        config:IotStackConfig,
        **kwargs
        ) -> None:

        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        environment = config.environment
        self.parameter_helper = ParameterStoreHelper(self, environment=environment, stack_name="certificates")

        #############################################################
        # ***** Certificate Storage *****
        #############################################################
        _top_logger.info(f"Define certificates bucket for {environment}")
        self.certificate_bucket = aws_s3.Bucket(
            self, "CertificateBucket",
            bucket_name=f"{PROJECT_NAME}-certificates-{environment}-{self.account}",
            encryption=aws_s3.BucketEncryption.S3_MANAGED,
            block_public_access=aws_s3.BlockPublicAccess.BLOCK_ALL,
            # old versions expire after 90 days
            versioned=True,
            lifecycle_rules=[
                aws_s3.LifecycleRule(
                    id="DeleteOldVersions",
                    enabled=True,
                    noncurrent_version_expiration=Duration.days(90)
                )
            ],
            removal_policy=RemovalPolicy.RETAIN if config.is_production else RemovalPolicy.DESTROY
        )
        for t_name, t_value in {"Project": PROJECT_NAME, "Environment": environment, "Service": SERVICE_NAME, "Component": "CertificateStorage"}.items():
            Tags.of(self.certificate_bucket).add(t_name, t_value)

        #############################################################
        # ***** Parameter Store *****
        #############################################################
        _top_logger.info(f"Publish certificates parameters")
        self.parameter_helper.create_parameter(
            "CertificateBucketNameParam", self.certificate_bucket.bucket_name,
            "S3 bucket for storing device metadata and backup certificates",
            f"{parameter_root(environment)}/iot-core/certificate-bucket/name"
        )
        self.parameter_helper.create_parameter(
            "CertificateBucketArnParam", self.certificate_bucket.bucket_arn,
            "ARN of the S3 bucket for certificates",
            f"{parameter_root(environment)}/iot-core/certificate-bucket/arn"
        )
        # AWS IoT Core endpoints (pseudo parameters are resolved at deployment)
        self.iot_endpoint = f"{Aws.ACCOUNT_ID}.iot.{Aws.REGION}.amazonaws.com"
        self.iot_data_endpoint = f"{Aws.ACCOUNT_ID}-ats.iot.{Aws.REGION}.amazonaws.com"
        self.parameter_helper.create_parameter(
            "IoTEndpointParam", self.iot_endpoint,
            "AWS IoT Core endpoint for certificate management",
            f"{parameter_root(environment)}/iot-core/endpoint"
        )
        self.parameter_helper.create_parameter(
            "IoTDataEndpointParam", self.iot_data_endpoint,
            "AWS IoT Core data endpoint for ESP32 receiver connections",
            f"{parameter_root(environment)}/iot-core/data-endpoint"
        )
        self.parameter_helper.create_parameter(
            "CertificateTypeParam", "AWS_MANAGED",
            "Certificate type: AWS IoT Core managed certificates for ESP32 receivers",
            f"{parameter_root(environment)}/iot-core/certificate-type"
        )
        self.parameter_helper.create_parameter(
            "CertificateExpirationDaysParam", str(config.certificate_expiration_days),
            "Number of days before ESP32 receiver certificates expire",
            f"{parameter_root(environment)}/iot-core/certificate-expiration-days"
        )
        self.parameter_helper.create_parameter(
            "ReceiverCertificateConfigParam",
            json.dumps({
                "type": "AWS_MANAGED",
                "autoActivate": True,
                "attachPolicy": True,
                "policyName": f"AcornPupsReceiverPolicy-{environment}",
                "thingTypeName": f"AcornPupsReceiver-{environment}",
                "validityPeriod": config.certificate_expiration_days,
                "certificateStatus": "ACTIVE",
                "deviceType": "ESP32_RECEIVER"
            }),
            "ESP32 receiver certificate configuration for AWS IoT Core",
            f"{parameter_root(environment)}/iot-core/receiver-certificate-config"
        )
        self.parameter_helper.create_parameter(
            "CertificateGenerationWorkflowParam", json.dumps(certificate_generation_workflow(environment)),
            "Certificate generation workflow for ESP32 receivers",
            f"{parameter_root(environment)}/iot-core/certificate-generation-workflow"
        )
        self.parameter_helper.create_parameter(
            "ReceiverCertificateFilesParam", json.dumps(RECEIVER_CERTIFICATE_FILES),
            "Required certificate files for ESP32 receivers",
            f"{parameter_root(environment)}/iot-core/receiver-certificate-files"
        )
        self.parameter_helper.create_multiple_outputs_with_parameters([
            {
                "output_id": "CertificateBucketNameOutput",
                "value": self.certificate_bucket.bucket_name,
                "description": "Name of the certificate storage bucket",
                "export_name": f"AcornPupsCertificateBucketName-{environment}"
            },
            {
                "output_id": "CertificateBucketArnOutput",
                "value": self.certificate_bucket.bucket_arn,
                "description": "ARN of the certificate storage bucket",
                "export_name": f"AcornPupsCertificateBucketArn-{environment}"
            },
            {
                "output_id": "IoTEndpointOutput",
                "value": self.iot_endpoint,
                "description": "AWS IoT Core endpoint",
                "export_name": f"AcornPupsIoTEndpoint-{environment}"
            },
            {
                "output_id": "IoTDataEndpointOutput",
                "value": self.iot_data_endpoint,
                "description": "AWS IoT Core data endpoint for ESP32 receivers",
                "export_name": f"AcornPupsIoTDataEndpoint-{environment}"
            },
        ])
        self.parameter_helper.create_parameter(
            "AmazonRootCAInfoParam", json.dumps(AMAZON_ROOT_CA_INFO),
            "Amazon Root CA information for ESP32 receiver configuration",
            f"{parameter_root(environment)}/iot-core/amazon-root-ca"
        )
        self.parameter_helper.create_parameter(
            "CertificateSecurityBestPracticesParam", json.dumps(CERTIFICATE_SECURITY_BEST_PRACTICES),
            "Certificate security best practices for ESP32 receivers",
            f"{parameter_root(environment)}/iot-core/certificate-security-best-practices"
        )
