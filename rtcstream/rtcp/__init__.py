"""RTCP wire formats: common header, report blocks, receiver and sender reports, transport feedback and NACK."""