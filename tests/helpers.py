from connwatch.records import ConnectionKey, ConnectionRecord, Endpoint


def make_record(remote_port, remote_host="93.184.216.34", state="ESTABLISHED", pid=4242, local_port="50000"):
    remote = Endpoint(remote_host, str(remote_port)) if remote_port is not None else None
    key = ConnectionKey("TCP", Endpoint("10.0.0.2", local_port), remote, pid)
    return ConnectionRecord(identity=key, state_label=state, command="firefox")


def snapshot(*records):
    return {r.identity: r for r in records}
