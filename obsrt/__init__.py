"""Runtime support imported by code generated with obsgen.

Generated modules reference three namespaces from this package:

    obsrt.cancellation   CancellationToken / CancellationTokenSource
    obsrt.streams        Unit, Subject, from_event, from_event_with
    obsrt.host           Node, add_to, CONNECT_LOCK
"""
