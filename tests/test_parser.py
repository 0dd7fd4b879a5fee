import unittest

from connwatch.parser import parse_endpoint, parse_lsof, parse_name
from connwatch.records import ConnectionKey, Endpoint

LSOF_OUTPUT = """\
COMMAND   PID  USER   FD   TYPE DEVICE SIZE/OFF NODE NAME
firefox  4242 alice   45u  IPv4 123456      0t0  TCP 10.0.0.2:51234->93.184.216.34:443 (ESTABLISHED)
firefox  4242 alice   46u  IPv6 123457      0t0  TCP [::1]:6000->[::1]:7000 (ESTABLISHED)
firefox  4242 alice   47u  IPv4 123458      0t0  UDP *:5353
firefox  4242 alice   48u  IPv4 123459      0t0  TCP 127.0.0.1:8080 (LISTEN)
sshd      999 root     3u  IPv4   1111      0t0  TCP 10.0.0.2:22->10.0.0.9:50000 (ESTABLISHED)
"""


class TestParseEndpoint(unittest.TestCase):
    def test_ipv4(self):
        self.assertEqual(parse_endpoint("10.0.0.2:443"), Endpoint("10.0.0.2", "443"))

    def test_ipv6_brackets_are_stripped(self):
        ep = parse_endpoint("[fe80::1%en0]:123")
        self.assertEqual(ep.host, "fe80::1%en0")
        self.assertEqual(str(ep), "[fe80::1%en0]:123")

    def test_wildcards(self):
        self.assertEqual(parse_endpoint("*:*"), Endpoint("*", "*"))

    def test_missing_port(self):
        self.assertIsNone(parse_endpoint("93.184.216.34"))
        self.assertIsNone(parse_endpoint("10.0.0.2:"))
        self.assertIsNone(parse_endpoint("[::1]"))
        self.assertIsNone(parse_endpoint("host:https"))

    def test_name_without_peer(self):
        local, remote = parse_name("*:5353")
        self.assertEqual(local, Endpoint("*", "5353"))
        self.assertIsNone(remote)

    def test_name_with_bad_peer_raises(self):
        with self.assertRaises(ValueError):
            parse_name("10.0.0.2:51234->93.184.216.34")


class TestParseLsof(unittest.TestCase):
    def test_filters_header_and_other_pids(self):
        result = parse_lsof(LSOF_OUTPUT, {4242})
        self.assertEqual(len(result.records), 4)
        self.assertEqual(result.skipped, 0)
        self.assertTrue(all(k.pid == 4242 for k in result.records))

    def test_established_connection(self):
        records = parse_lsof(LSOF_OUTPUT, {4242}).records
        key = ConnectionKey("TCP", Endpoint("10.0.0.2", "51234"), Endpoint("93.184.216.34", "443"), 4242)
        self.assertIn(key, records)
        self.assertEqual(records[key].state_label, "ESTABLISHED")
        self.assertEqual(records[key].command, "firefox")

    def test_listening_and_udp_sockets_kept_without_remote(self):
        records = parse_lsof(LSOF_OUTPUT, {4242}).records
        udp = ConnectionKey("UDP", Endpoint("*", "5353"), None, 4242)
        listen = ConnectionKey("TCP", Endpoint("127.0.0.1", "8080"), None, 4242)
        self.assertEqual(records[udp].state_label, "")
        self.assertEqual(records[listen].state_label, "LISTEN")

    def test_multiple_pids(self):
        self.assertEqual(len(parse_lsof(LSOF_OUTPUT, {4242, 999}).records), 5)
        self.assertEqual(len(parse_lsof(LSOF_OUTPUT, {"999"}).records), 1)

    def test_malformed_line_is_skipped_not_fatal(self):
        text = (
            "firefox 4242 alice 45u IPv4 1 0t0 TCP 10.0.0.2:51234->93.184.216.34:443 (ESTABLISHED)\n"
            "firefox 4242 alice 49u IPv4 2 0t0 TCP 10.0.0.2:51235->93.184.216.34 (SYN_SENT)\n"
        )
        result = parse_lsof(text, {4242})
        self.assertEqual(len(result.records), 1)
        self.assertEqual(result.skipped, 1)

    def test_bad_state_column_is_skipped(self):
        text = "firefox 4242 alice 45u IPv4 1 0t0 TCP 10.0.0.2:1->1.1.1.1:2 ESTABLISHED\n"
        result = parse_lsof(text, {4242})
        self.assertEqual(result.records, {})
        self.assertEqual(result.skipped, 1)

    def test_wrong_field_count_dropped_silently(self):
        text = "garbage\nfirefox 4242 alice 45u IPv4 1 0t0 TCP 10.0.0.2:1->1.1.1.1:2 (ESTABLISHED) extra\n"
        result = parse_lsof(text, {4242})
        self.assertEqual(result.records, {})
        self.assertEqual(result.skipped, 0)

    def test_duplicate_identity_last_line_wins(self):
        text = (
            "nginx 10 www 6u IPv4 1 0t0 TCP 10.0.0.2:80->10.0.0.9:5000 (ESTABLISHED)\n"
            "nginx 10 www 7u IPv4 1 0t0 TCP 10.0.0.2:80->10.0.0.9:5000 (CLOSE_WAIT)\n"
        )
        records = parse_lsof(text, {10}).records
        self.assertEqual(len(records), 1)
        self.assertEqual(next(iter(records.values())).state_label, "CLOSE_WAIT")

    def test_empty_and_none_input(self):
        self.assertEqual(parse_lsof("", {1}).records, {})
        self.assertEqual(parse_lsof(None, {1}).records, {})


if __name__ == "__main__":
    unittest.main()
