"""
Decoding of web processing service XML responses.

Responses are parsed once into an ElementTree and navigated by local
element names, so the WPS/OWS namespace prefixes used by a given server
do not matter.
"""

import xml.etree.ElementTree as ET
from typing import Optional, Tuple

from l2a_ondemand.domain.exceptions import ProtocolError, RemoteProcessError
from l2a_ondemand.domain.models import (
    ProcessStatus,
    RemoteJobStatus,
    RemoteJobSubmission,
    ServiceDescriptor,
)
from l2a_ondemand.shared.dates import parse_timestamp
from l2a_ondemand.shared.logging import get_logger

logger = get_logger(__name__)


def parse_document(body: bytes) -> ET.Element:
    """Parse a response body, return its root element."""
    try:
        return ET.fromstring(body)
    except ET.ParseError as e:
        raise ProtocolError(f"Response is not a valid XML document: {e}") from e


def local_name(name: str) -> str:
    """Strip the '{namespace}' part of an element or attribute name."""
    return name.rsplit('}', 1)[-1]


def child(element: Optional[ET.Element], *path: str) -> Optional[ET.Element]:
    """Follow a path of local names through first-matching children."""
    for name in path:
        if element is None:
            return None
        element = next((c for c in element if local_name(c.tag) == name), None)
    return element


def first_child(element: Optional[ET.Element]) -> Optional[ET.Element]:
    if element is None:
        return None
    return next(iter(element), None)


def attribute(element: Optional[ET.Element], name: str) -> Optional[str]:
    """Get an attribute by local name, whatever its namespace."""
    if element is None:
        return None
    for key, value in element.attrib.items():
        if local_name(key) == name:
            return value
    return None


def text(element: Optional[ET.Element]) -> Optional[str]:
    if element is None or element.text is None:
        return None
    return element.text.strip()


def decode_capabilities(root: ET.Element, url: str) -> ServiceDescriptor:
    """
    Decode a GetCapabilities response.

    Raises:
        ProtocolError: If the service identification block is missing or incomplete
    """
    identification = child(root, 'ServiceIdentification')
    if identification is None:
        raise ProtocolError("Capabilities response has no ServiceIdentification")

    label = text(child(identification, 'Title'))
    description = text(child(identification, 'Abstract'))
    version = text(child(identification, 'ServiceTypeVersion'))
    if label is None or description is None or not version:
        raise ProtocolError("ServiceIdentification is missing Title, Abstract or ServiceTypeVersion")

    processes = []
    offerings = child(root, 'ProcessOfferings')
    if offerings is not None:
        for process in offerings:
            name = text(child(process, 'Identifier')) or text(child(process, 'Title'))
            if name:
                processes.append(name)

    return ServiceDescriptor(
        url=url,
        label=label,
        description=description,
        version=version,
        processes=tuple(processes),
    )


def decode_execute_response(root: ET.Element) -> RemoteJobSubmission:
    """
    Decode the response to an asynchronous Execute request.

    Raises:
        RemoteProcessError: If the service reports the process as failed
        ProtocolError: If the response is neither accepted nor failed
    """
    status_node = child(root, 'Status')

    if child(status_node, 'ProcessAccepted') is not None:
        creation_time = attribute(status_node, 'creationTime')
        monitoring_url = attribute(root, 'statusLocation')
        if not creation_time or not monitoring_url:
            raise ProtocolError("Accepted execution lacks creationTime or statusLocation")
        try:
            created = parse_timestamp(creation_time)
        except ValueError as e:
            raise ProtocolError(f"Invalid creationTime: {e}") from e
        return RemoteJobSubmission(
            status=ProcessStatus.from_tag(local_name(first_child(status_node).tag)),
            creation_time=created,
            monitoring_url=monitoring_url.strip(),
        )

    failed = child(status_node, 'ProcessFailed')
    if failed is not None:
        code, message = _exception_report(failed, root)
        raise RemoteProcessError(code, message)

    shape = local_name(first_child(status_node).tag) if first_child(status_node) is not None else None
    raise ProtocolError(f"Process failed with unknown status: {shape}")


def decode_status(root: ET.Element) -> RemoteJobStatus:
    """
    Decode a process execution status document.

    Raises:
        ProtocolError: If the status block is missing or a field is malformed
    """
    node = first_child(child(root, 'Status'))
    if node is None:
        raise ProtocolError("Status response has no Status element")

    tag = local_name(node.tag)
    status = ProcessStatus.from_tag(tag)

    if status is ProcessStatus.ACCEPTED:
        return RemoteJobStatus(status, 0)

    if status in (ProcessStatus.STARTED, ProcessStatus.PAUSED):
        percent = attribute(node, 'percentCompleted')
        try:
            return RemoteJobStatus(status, int(percent))
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Invalid percentCompleted on {tag}: {percent!r}") from e

    if status is ProcessStatus.SUCCEEDED:
        output = text(child(first_child(child(root, 'ProcessOutputs')), 'Data', 'LiteralData'))
        if not output:
            raise ProtocolError("Succeeded execution has no literal output")
        return RemoteJobStatus(status, 100, output)

    if status is ProcessStatus.FAILED:
        code, message = _exception_report(node, root)
        logger.info(f"Web process service returned status '{tag}', message: {message} (code: {code})")
        return RemoteJobStatus(status, -1)

    logger.warning(f"Unrecognised process status '{tag}'")
    return RemoteJobStatus(ProcessStatus.UNKNOWN, -1)


def _exception_report(failed: ET.Element, root: ET.Element) -> Tuple[Optional[str], Optional[str]]:
    """Find the exception code and text of a failed process."""
    report = child(failed, 'ExceptionReport')
    if report is None:
        report = child(root, 'ExceptionReport')
    exception = child(report, 'Exception')
    if exception is None:
        return None, text(failed)
    return attribute(exception, 'exceptionCode'), text(child(exception, 'ExceptionText'))
